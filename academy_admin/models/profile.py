"""Profile model - identity of every actor, tenant staff and platform owners alike."""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from werkzeug.security import generate_password_hash, check_password_hash
from academy_admin.database import Base, new_id, utcnow

PLATFORM_ROLES = ('platform_owner', 'platform_admin')


class Profile(Base):
    """Profile model.

    Platform owners carry no tenant_id and operate across all tenants;
    tenant staff belong to exactly one tenant and optionally one branch.
    """

    __tablename__ = 'profiles'

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(200), nullable=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default='staff')
    tenant_id = Column(String(36), ForeignKey('tenants.id'), nullable=True, index=True)
    branch_id = Column(String(36), nullable=True)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    last_login = Column(DateTime, nullable=True)

    def set_password(self, password):
        """Set password hash."""
        self.password_hash = generate_password_hash(password, method='scrypt')

    def check_password(self, password):
        """Check password against hash."""
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_platform_owner(self):
        return self.role in PLATFORM_ROLES

    def __repr__(self):
        return f"<Profile(id={self.id}, email='{self.email}', role='{self.role}')>"
