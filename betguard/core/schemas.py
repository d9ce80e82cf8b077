from pydantic import BaseModel
from typing import Optional, List, Generic, TypeVar

T = TypeVar("T")


class StandardResponse(BaseModel, Generic[T]):
    """모든 API 응답의 기본 형식"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ErrorResponseDetail(BaseModel):
    """요청 검증 오류 상세"""
    loc: Optional[List[str]] = None
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Standard Error Response structure"""
    success: bool = False
    message: str
    error_code: Optional[str] = None  # e.g. 'alert_not_found'
    details: Optional[List[ErrorResponseDetail]] = None

# 사용 예:
# return StandardResponse[AlertResponse](data=alert, message="Alert assigned.")
# return ErrorResponse(message="Alert not found", error_code="alert_not_found")
