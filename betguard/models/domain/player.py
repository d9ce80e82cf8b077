"""
플레이어 읽기 모델

players 테이블은 사용자 서비스가 소유한다. 이 서비스는 계정 생성일, KYC 상태,
이메일 도메인, 중복 개인정보 조회에만 사용하며 쓰지 않는다.
"""
import uuid

from sqlalchemy import Column, String, Date, DateTime

from betguard.core.datetime_utils import utcnow
from betguard.db.database import Base
from betguard.db.types import GUID


class Player(Base):
    """플레이어 모델"""
    __tablename__ = "players"

    id = Column(GUID, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    # verified, pending, rejected, not_started (외부 값이므로 문자열로 보관)
    kyc_status = Column(String(50), nullable=False, default="not_started")

    first_name = Column(String(100))
    last_name = Column(String(100))
    date_of_birth = Column(Date)
    phone_number = Column(String(50), index=True)
    address = Column(String(500))
    bank_account = Column(String(100), index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def email_domain(self) -> str:
        if not self.email or "@" not in self.email:
            return ""
        return self.email.rsplit("@", 1)[1].lower()

    def __repr__(self):
        return f"<Player id={self.id} email={self.email} kyc_status={self.kyc_status}>"
