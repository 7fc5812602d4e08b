"""
Row-Level Policy Configuration
This config defines which identities may read and write each table.
The backing store enforces these rules; app/scripts/render_policies.py turns
them into SQL, and the test suite's in-memory store evaluates them directly.
"""

from typing import Any, Dict, Mapping, Optional

from app.core.roles import ADMIN_ROLES, Role

# Rule kinds
ANYONE = "anyone"      # including anonymous callers
OWNER = "owner"        # auth.uid() equals the row's owner column
ADMIN = "admin"        # caller's profile role is admin or superadmin

OPERATIONS = ("select", "insert", "update", "delete")

# Define tables and their owner columns
TABLES = {
    "profiles": {
        "owner_column": "id",
        "description": "User profiles keyed by identity id"
    },
    "menu_items": {
        "owner_column": None,
        "description": "Restaurant menu catalog"
    },
    "orders": {
        "owner_column": None,
        "description": "Customer orders"
    }
}

# Any listed rule grants the operation
ROW_POLICIES = {
    "profiles": {
        "select": [ANYONE],
        "insert": [OWNER],
        "update": [OWNER, ADMIN],
        "delete": [ADMIN],
    },
    "menu_items": {
        "select": [ANYONE],
        "insert": [ADMIN],
        "update": [ADMIN],
        "delete": [ADMIN],
    },
    "orders": {
        "select": [ANYONE],
        "insert": [ANYONE],
        "update": [ADMIN],
        "delete": [ADMIN],
    },
}

RULE_DESCRIPTIONS = {
    ANYONE: "Anyone can {verb} {table}",
    OWNER: "Users can {verb} own {table}",
    ADMIN: "Admins can {verb} {table}",
}

VERBS = {"select": "view", "insert": "create", "update": "update", "delete": "delete"}


def get_policy_matrix():
    """
    Returns one entry per (table, operation, rule)
    Format: [
        {"name": "Anyone can view menu_items", "table": "menu_items",
         "operation": "select", "rule": "anyone"},
        ...
    ]
    """
    policies = []
    for table, operations in ROW_POLICIES.items():
        for operation in OPERATIONS:
            for rule in operations.get(operation, []):
                policies.append({
                    "name": RULE_DESCRIPTIONS[rule].format(verb=VERBS[operation], table=table),
                    "table": table,
                    "operation": operation,
                    "rule": rule,
                })
    return policies


def rule_allows(
    rule: str,
    table: str,
    user_id: Optional[str],
    role: Optional[str],
    row: Optional[Mapping[str, Any]] = None,
) -> bool:
    if rule == ANYONE:
        return True
    if user_id is None:
        return False
    if rule == OWNER:
        owner_column = TABLES[table]["owner_column"]
        return owner_column is not None and row is not None and str(row.get(owner_column)) == str(user_id)
    if rule == ADMIN:
        return role is not None and Role(role) in ADMIN_ROLES
    raise ValueError(f"Unknown policy rule: {rule}")


def is_allowed(
    table: str,
    operation: str,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
    row: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Evaluate the declared policies for one row. Undeclared tables or operations are denied."""
    rules = ROW_POLICIES.get(table, {}).get(operation, [])
    return any(rule_allows(rule, table, user_id, role, row) for rule in rules)


# Export the matrix for use in the SQL renderer
POLICY_MATRIX: Dict[str, Any] = {"tables": TABLES, "policies": get_policy_matrix()}
