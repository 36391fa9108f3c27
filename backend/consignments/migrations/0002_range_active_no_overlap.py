from django.db import migrations

DDL = r"""
CREATE EXTENSION IF NOT EXISTS btree_gist;

-- Active ranges of one entity never share a number
DO $$
BEGIN
    IF NOT EXISTS (
        SELECT 1
        FROM pg_constraint
        WHERE conname='range_active_no_overlap'
    ) THEN
        ALTER TABLE consignment_range_assignments ADD CONSTRAINT range_active_no_overlap EXCLUDE USING gist (
            entity_type WITH =,
            entity_id WITH =,
            int8range(start_number, end_number, '[]') WITH &&
        ) WHERE (is_active);
    END IF;
END
$$;
"""

REVERSE_DDL = r"""
ALTER TABLE consignment_range_assignments DROP CONSTRAINT IF EXISTS range_active_no_overlap;
"""


def _postgres_only(sql):
    def run(apps, schema_editor):
        if schema_editor.connection.vendor == "postgresql":
            schema_editor.execute(sql, params=None)
    return run


class Migration(migrations.Migration):
    dependencies = [("consignments", "0001_initial")]
    operations = [migrations.RunPython(_postgres_only(DDL), _postgres_only(REVERSE_DDL))]
