"""
Pydantic schemas for API request/response models
"""

from datetime import date as DateType, datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class ChurchPositionEnum(str, Enum):
    MEMBER = "Miembro"
    MINISTER = "Ministro"
    DEACON = "Diácono"
    HELPER = "Ayudante"
    PASTOR = "Pastor"
    CO_PASTOR = "Co-Pastor"
    OTHER = "Otro"


class MemberStatusEnum(str, Enum):
    ACTIVE = "Activo"
    INACTIVE = "Inactivo"
    DISCIPLINED = "Disciplinado"


class IncomeCategoryEnum(str, Enum):
    TITHE = "Diezmo"
    GENERAL_OFFERING = "Ofrenda General"
    BUILDING_FUND = "Pro-templo"
    SPECIAL_OFFERING = "Ofrenda Especial"


class ExpenseCategoryEnum(str, Enum):
    UTILITIES = "Servicios Basicos"
    MAINTENANCE = "Mantenimiento"
    SOCIAL_AID = "Ayuda Social"
    CLEANING = "Limpieza"
    OTHER = "Otros"


class RecordPayload(BaseModel):
    """Base for request bodies forwarded to the remote service"""

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', exclude_unset=True)


class UpdatePayload(RecordPayload):
    """Partial update; only fields present in the request are sent"""

    @model_validator(mode='after')
    def validate_not_empty(self):
        if not self.model_fields_set:
            raise ValueError('At least one field must be provided')
        return self


class MemberCreate(RecordPayload):
    full_name: str = Field(..., min_length=1, max_length=200)
    dui: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    baptism_date: Optional[DateType] = None
    sector_id: Optional[int] = None
    church_position: ChurchPositionEnum = ChurchPositionEnum.MEMBER
    status: MemberStatusEnum = MemberStatusEnum.ACTIVE

    def to_record(self) -> Dict[str, Any]:
        record = self.model_dump(mode='json')
        record['is_baptized'] = self.baptism_date is not None
        return record


class MemberUpdate(UpdatePayload):
    full_name: Optional[str] = Field(None, min_length=1, max_length=200)
    dui: Optional[str] = Field(None, max_length=20)
    phone: Optional[str] = Field(None, max_length=30)
    address: Optional[str] = None
    baptism_date: Optional[DateType] = None
    sector_id: Optional[int] = None
    church_position: Optional[ChurchPositionEnum] = None
    status: Optional[MemberStatusEnum] = None

    def to_record(self) -> Dict[str, Any]:
        record = super().to_record()
        if 'baptism_date' in record:
            record['is_baptized'] = record['baptism_date'] is not None
        return record


class IncomeCreate(RecordPayload):
    amount: float = Field(..., gt=0)
    date: DateType
    category: IncomeCategoryEnum
    period: Optional[str] = Field(None, max_length=20)
    member_id: Optional[str] = None
    sector_id: Optional[int] = None
    notes: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class IncomeUpdate(UpdatePayload):
    amount: Optional[float] = Field(None, gt=0)
    date: Optional[DateType] = None
    category: Optional[IncomeCategoryEnum] = None
    period: Optional[str] = Field(None, max_length=20)
    member_id: Optional[str] = None
    sector_id: Optional[int] = None
    notes: Optional[str] = None


class ExpenseCreate(RecordPayload):
    amount: float = Field(..., gt=0)
    date: DateType
    category: ExpenseCategoryEnum
    description: str = Field(..., min_length=1)
    receipt_url: Optional[str] = None
    funding_source: Optional[IncomeCategoryEnum] = None

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode='json')


class ExpenseUpdate(UpdatePayload):
    amount: Optional[float] = Field(None, gt=0)
    date: Optional[DateType] = None
    category: Optional[ExpenseCategoryEnum] = None
    description: Optional[str] = Field(None, min_length=1)
    receipt_url: Optional[str] = None
    funding_source: Optional[IncomeCategoryEnum] = None


class SyncResultResponse(BaseModel):
    success: bool
    synced: int
    failed: int
    errors: List[str] = Field(default_factory=list)


class PendingOperationResponse(BaseModel):
    id: int
    entity_collection: str
    operation_kind: str
    payload: Dict[str, Any]
    enqueued_at: Optional[datetime] = None
    attempt_count: int
    last_error: Optional[str] = None
    dead_letter: bool = False


class SyncStatusResponse(BaseModel):
    online: bool
    is_running: bool
    pending_operations: int
    dead_letters: int
    max_retries: int
    last_sync: Optional[datetime] = None
    last_result: Optional[SyncResultResponse] = None
    scheduler: Dict[str, Any] = Field(default_factory=dict)


class RefreshResponse(BaseModel):
    refreshed: Dict[str, int]
    timestamp: datetime
