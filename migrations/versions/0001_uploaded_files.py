from __future__ import annotations

"""uploaded files and chunks"""

from alembic import op
import sqlalchemy as sa


revision = "0001_uploaded_files"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "uploaded_files",
        sa.Column("file_id", sa.String(length=64), primary_key=True),
        sa.Column("conversation_id", sa.String(length=255), nullable=True),
        sa.Column("session_id", sa.String(length=255), nullable=False),
        sa.Column("filename", sa.String(length=1024), nullable=False),
        # base64 text of inline files; NULL when the file is chunked
        sa.Column("file_content", sa.Text, nullable=True),
        sa.Column("file_size", sa.BigInteger, nullable=False),
        sa.Column("mime_type", sa.String(length=255), nullable=False, server_default="application/octet-stream"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("is_chunked", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("chunk_count", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.CheckConstraint(
            "(is_chunked AND chunk_count > 0 AND file_content IS NULL) "
            "OR (NOT is_chunked AND chunk_count = 0 AND file_content IS NOT NULL)",
            name="ck_uploaded_files_layout",
        ),
    )
    op.create_index("idx_uploaded_files_conversation", "uploaded_files", ["conversation_id", "uploaded_at"])

    op.create_table(
        "uploaded_file_chunks",
        sa.Column("file_id", sa.String(length=64), nullable=False),
        sa.Column("chunk_index", sa.Integer, nullable=False),
        sa.Column("chunk_content", sa.Text, nullable=False),
        sa.PrimaryKeyConstraint("file_id", "chunk_index", name="pk_uploaded_file_chunks"),
        sa.CheckConstraint("chunk_index >= 0", name="ck_uploaded_file_chunks_index"),
    )


def downgrade() -> None:
    op.drop_table("uploaded_file_chunks")
    op.drop_index("idx_uploaded_files_conversation", table_name="uploaded_files")
    op.drop_table("uploaded_files")
