import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from worklane.models.base import Base
from worklane.models.enums import RoleKind
from worklane.models.permission import Permission

role_permissions = sa.Table(
    "role_permissions",
    Base.metadata,
    sa.Column("role_id", UUID(as_uuid=True), sa.ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    sa.Column(
        "permission_id", UUID(as_uuid=True), sa.ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True
    ),
)

class Role(Base):
    __tablename__ = "roles"
    __table_args__ = (
        sa.UniqueConstraint("org_id", "name", name="uq_roles_org_name"),
        # templates have no org, so the composite constraint above never fires for them
        sa.Index(
            "uq_roles_template_name",
            "name",
            unique=True,
            postgresql_where=sa.text("org_id IS NULL"),
            sqlite_where=sa.text("org_id IS NULL"),
        ),
        sa.CheckConstraint(
            "(is_system AND org_id IS NULL) OR (NOT is_system AND org_id IS NOT NULL)",
            name="ck_roles_system_scope",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # null only for system templates
    org_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("orgs.id", ondelete="CASCADE"), index=True, nullable=True
    )
    name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    is_system: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, default=False)

    permissions: Mapped[list[Permission]] = relationship(
        secondary=role_permissions, lazy="selectin", order_by=Permission.name
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
        nullable=False,
    )

    @property
    def kind(self) -> RoleKind:
        return RoleKind.system_template if self.is_system else RoleKind.organization

    @property
    def is_mutable(self) -> bool:
        return self.kind is RoleKind.organization

    @property
    def permission_names(self) -> list[str]:
        return sorted(p.name for p in self.permissions)

    def __repr__(self) -> str:
        return f"<Role {self.name} org={self.org_id} system={self.is_system}>"
