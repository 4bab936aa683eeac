"""seed default priority rubric

Revision ID: 0002_seed_default_priority_rules
Revises: 0001_initial_schema
Create Date: 2026-10-05 09:30:00.000000

Inserts the default criteria and thresholds when the tables are empty.
Uses INSERT … WHERE NOT EXISTS so the migration is idempotent.

The values are derived from ``workdesk.core.default_priority_rules``.
Do NOT edit values here directly; update that module instead.
"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002_seed_default_priority_rules"
down_revision: Union[str, None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


from workdesk.core.default_priority_rules import (  # noqa: E402
    DEFAULT_PRIORITY_CRITERIA,
    DEFAULT_PRIORITY_THRESHOLDS,
)


def _quote(value: str) -> str:
    return value.replace("'", "''")


def upgrade() -> None:
    for row in DEFAULT_PRIORITY_CRITERIA:
        field_key = _quote(row["field_key"])
        op.execute(
            f"""
            INSERT INTO priority_criteria (question, field_key, weight, "order", is_active)
            SELECT '{_quote(row["question"])}', '{field_key}', {row["weight"]},
                   {row["order"]}, {str(row["is_active"]).lower()}
            WHERE NOT EXISTS (
                SELECT 1 FROM priority_criteria WHERE field_key = '{field_key}'
            );
            """
        )

    for row in DEFAULT_PRIORITY_THRESHOLDS:
        op.execute(
            f"""
            INSERT INTO priority_thresholds (min_score, max_score, priority)
            SELECT {row["min_score"]}, {row["max_score"]}, '{row["priority"]}'
            WHERE NOT EXISTS (
                SELECT 1 FROM priority_thresholds WHERE priority = '{row["priority"]}'
            );
            """
        )


def downgrade() -> None:
    for row in DEFAULT_PRIORITY_CRITERIA:
        op.execute(
            f"DELETE FROM priority_criteria WHERE field_key = '{_quote(row['field_key'])}';"
        )
    for row in DEFAULT_PRIORITY_THRESHOLDS:
        op.execute(
            "DELETE FROM priority_thresholds "
            f"WHERE min_score = {row['min_score']} AND max_score = {row['max_score']};"
        )
