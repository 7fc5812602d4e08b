"""
Render Row-Level Policies Script
This script prints the SQL for the row-level policies, the profile
provisioning trigger and the get_all_users RPC, using the policies config.
Run it and apply the output in the Supabase SQL editor.
"""

import argparse
import logging
import sys
from typing import List, Optional

from app.config import settings
from app.config.policies_config import ADMIN, ANYONE, OWNER, POLICY_MATRIX

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def physical_table(table: str) -> str:
    return settings.profiles_table if table == "profiles" else table


def rule_predicate(rule: str, table: str) -> str:
    profiles = settings.profiles_table
    if rule == ANYONE:
        return "true"
    if rule == OWNER:
        owner_column = POLICY_MATRIX["tables"][table]["owner_column"]
        return f"auth.uid() = {owner_column}"
    if rule == ADMIN:
        return (
            "EXISTS (\n"
            f"      SELECT 1 FROM {profiles}\n"
            f"      WHERE {profiles}.id = auth.uid()\n"
            f"      AND {profiles}.role IN ('admin', 'superadmin')\n"
            "    )"
        )
    raise ValueError(f"Unknown policy rule: {rule}")


def render_policy(policy: dict) -> str:
    table = physical_table(policy["table"])
    operation = policy["operation"]
    predicate = rule_predicate(policy["rule"], policy["table"])
    lines = [
        f'DROP POLICY IF EXISTS "{policy["name"]}" ON {table};',
        f'CREATE POLICY "{policy["name"]}"',
        f"  ON {table} FOR {operation.upper()}",
    ]
    if operation == "insert":
        lines.append(f"  WITH CHECK ({predicate});")
    elif operation == "update" and policy["rule"] == OWNER:
        lines.append(f"  USING ({predicate})")
        lines.append(f"  WITH CHECK ({predicate});")
    else:
        lines.append(f"  USING ({predicate});")
    return "\n".join(lines)


def render_provisioning_trigger() -> str:
    profiles = settings.profiles_table
    return f"""CREATE OR REPLACE FUNCTION handle_new_user()
RETURNS TRIGGER AS $$
BEGIN
  INSERT INTO public.{profiles} (id, email, full_name, phone)
  VALUES (NEW.id, NEW.email, NEW.raw_user_meta_data->>'full_name', NEW.raw_user_meta_data->>'phone');
  RETURN NEW;
END;
$$ LANGUAGE plpgsql SECURITY DEFINER;

DROP TRIGGER IF EXISTS on_auth_user_created ON auth.users;
CREATE TRIGGER on_auth_user_created
  AFTER INSERT ON auth.users
  FOR EACH ROW
  EXECUTE FUNCTION handle_new_user();"""


def render_get_all_users_rpc() -> str:
    profiles = settings.profiles_table
    return f"""CREATE OR REPLACE FUNCTION get_all_users()
RETURNS SETOF {profiles} AS $$
BEGIN
  IF NOT EXISTS (
    SELECT 1 FROM {profiles}
    WHERE id = auth.uid()
    AND role IN ('admin', 'superadmin')
  ) THEN
    RAISE EXCEPTION 'Access denied: Only admins can access this function';
  END IF;

  RETURN QUERY SELECT * FROM {profiles} ORDER BY created_at DESC;
END;
$$ LANGUAGE plpgsql SECURITY DEFINER;"""


def render_all() -> str:
    sections: List[str] = []
    for table in POLICY_MATRIX["tables"]:
        sections.append(f"ALTER TABLE {physical_table(table)} ENABLE ROW LEVEL SECURITY;")
    for policy in POLICY_MATRIX["policies"]:
        sections.append(render_policy(policy))
    sections.append(render_provisioning_trigger())
    sections.append(render_get_all_users_rpc())
    return "\n\n".join(sections) + "\n"


def main(argv: Optional[List[str]] = None):
    """Write the SQL to stdout or to --output"""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--output", "-o", help="File to write instead of stdout")
    args = parser.parse_args(argv)

    sql = render_all()
    if args.output:
        with open(args.output, "w") as f:
            f.write(sql)
        logger.info(f"Wrote {len(POLICY_MATRIX['policies'])} policies to {args.output}")
    else:
        sys.stdout.write(sql)


if __name__ == "__main__":
    main()
