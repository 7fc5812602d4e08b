from decimal import Decimal
from typing import Annotated

from pydantic import Field, PlainSerializer

# Fixed two-decimal, non-negative amount. Sent to the backing store as a JSON
# number so numeric columns and jsonb snapshots receive the same shape.
Money = Annotated[
    Decimal,
    Field(ge=0, max_digits=10, decimal_places=2),
    PlainSerializer(float, return_type=float, when_used="json"),
]
