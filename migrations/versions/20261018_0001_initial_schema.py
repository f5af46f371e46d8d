"""Create the registry catalog tables."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("login", sa.String(length=64), nullable=False),
        sa.Column("api_token", sa.String(length=128), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_users_login", "users", ["login"], unique=True)
    op.create_index("ix_users_api_token", "users", ["api_token"], unique=True)

    op.create_table(
        "packages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.CheckConstraint("downloads >= 0", name="ck_packages_downloads"),
    )
    op.create_index("ix_packages_name", "packages", ["name"], unique=True)
    op.create_index("ix_packages_user_id", "packages", ["user_id"])

    op.create_table(
        "versions",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("package_id", sa.Integer(), nullable=False),
        sa.Column("num", sa.String(length=128), nullable=False),
        sa.Column("downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(["package_id"], ["packages.id"]),
        sa.UniqueConstraint("package_id", "num", name="uq_versions_package_num"),
        sa.CheckConstraint("downloads >= 0", name="ck_versions_downloads"),
    )
    op.create_index("ix_versions_package_id", "versions", ["package_id"])

    op.create_table(
        "version_dependencies",
        sa.Column("version_id", sa.Integer(), nullable=False),
        sa.Column("depends_on_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["version_id"], ["versions.id"]),
        sa.ForeignKeyConstraint(["depends_on_id"], ["packages.id"]),
        sa.PrimaryKeyConstraint("version_id", "depends_on_id"),
    )
    op.create_index(
        "ix_version_dependencies_depends_on_id",
        "version_dependencies",
        ["depends_on_id"],
    )

    metadata_table = op.create_table(
        "metadata",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("total_downloads", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("total_downloads >= 0", name="ck_metadata_downloads"),
    )
    op.bulk_insert(metadata_table, [{"id": 1, "total_downloads": 0}])


def downgrade() -> None:
    op.drop_table("metadata")
    op.drop_index("ix_version_dependencies_depends_on_id", table_name="version_dependencies")
    op.drop_table("version_dependencies")
    op.drop_index("ix_versions_package_id", table_name="versions")
    op.drop_table("versions")
    op.drop_index("ix_packages_user_id", table_name="packages")
    op.drop_index("ix_packages_name", table_name="packages")
    op.drop_table("packages")
    op.drop_index("ix_users_api_token", table_name="users")
    op.drop_index("ix_users_login", table_name="users")
    op.drop_table("users")
