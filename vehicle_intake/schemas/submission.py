# vehicle_intake/schemas/submission.py
"""
Inbound payload of POST /receive-vehicle.
The body is a JSON array of VehicleGroupSubmission.
"""

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StringConstraints
from typing import Annotated, List, Optional

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
PositiveQuantity = Annotated[StrictInt, Field(gt=0)]


class AccessoryItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    accessory_name: NonEmptyStr
    quantity: PositiveQuantity = 1


class Address(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    city: Optional[str] = None
    district: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    zip_code: Optional[str] = None
    complement: Optional[str] = None


class VehicleLineItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    vehicle: NonEmptyStr                  # model name, e.g. "Model X"
    brand: NonEmptyStr
    year: Optional[int] = None
    quantity: PositiveQuantity = 1
    accessories: List[AccessoryItem] = Field(default_factory=list)
    modules: List[str] = Field(default_factory=list)


class VehicleGroupSubmission(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    company_name: NonEmptyStr
    usage_type: NonEmptyStr
    vehicles: Annotated[List[VehicleLineItem], Field(min_length=1)]
    accessories: List[AccessoryItem] = Field(default_factory=list)
    cpf: Optional[str] = None
    phone: Optional[str] = None
    sale_summary_id: Optional[int] = None
    pending_contract_id: Optional[int] = None
    address: Optional[Address] = None
