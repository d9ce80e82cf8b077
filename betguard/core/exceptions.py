"""
애플리케이션 공통 예외 클래스 정의
"""
from typing import Optional, Any


class AppException(Exception):
    """애플리케이션 기본 예외 클래스"""
    def __init__(self, message: str = "An application error occurred", status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class InvalidInputError(AppException):
    """잘못된 입력값 (이벤트 페이로드, 필터, 기간 등)"""
    def __init__(self, message: str = "Invalid input provided", status_code: int = 400):
        super().__init__(message, status_code)


class NotFoundError(AppException):
    """리소스를 찾을 수 없을 때 발생하는 범용 예외"""
    def __init__(self, resource_type: str = "Resource", identifier: Any = None, status_code: int = 404):
        if identifier:
            message = f"{resource_type} with identifier '{identifier}' not found."
        else:
            message = f"{resource_type} not found."
        super().__init__(message, status_code)
        self.resource_type = resource_type
        self.identifier = identifier


class RiskProfileNotFoundError(NotFoundError):
    def __init__(self, user_id: Any = None):
        super().__init__("Risk profile", user_id)
        self.user_id = user_id


class AlertNotFoundError(NotFoundError):
    def __init__(self, alert_id: Any = None):
        super().__init__("Compliance alert", alert_id)
        self.alert_id = alert_id


class ConflictError(AppException):
    """리소스 충돌 예외"""
    def __init__(self, resource_type: str = "Resource", identifier: Optional[str] = None, message: Optional[str] = None, status_code: int = 409):
        if message is None:
            if identifier:
                message = f"{resource_type} with identifier '{identifier}' causes a conflict."
            else:
                message = f"A conflict occurred with the requested {resource_type.lower()}.".capitalize()
        super().__init__(message, status_code)
        self.resource_type = resource_type
        self.identifier = identifier


class AlertStateConflictError(ConflictError):
    """종결 상태(resolved/false_positive) 알림에 대한 변경 시도"""
    def __init__(self, alert_id: Any, current_status: str, action: str):
        message = f"Cannot {action} alert {alert_id}: alert is already {current_status}."
        super().__init__("Compliance alert", str(alert_id), message=message)
        self.alert_id = alert_id
        self.current_status = current_status
        self.action = action


class DependencyError(AppException):
    """외부 입력(행동 지표, 패턴 점수 등) 조회 실패"""
    def __init__(self, dependency: str = "Dependency", message: Optional[str] = None, status_code: int = 503):
        if message is None:
            message = f"{dependency} is temporarily unavailable."
        super().__init__(message, status_code)
        self.dependency = dependency


class DatabaseError(AppException):
    def __init__(self, message: str = "A database error occurred", status_code: int = 500):
        super().__init__(message, status_code)
