import re
from pathlib import Path

from app.core.config import Settings

MIGRATIONS = Path(__file__).resolve().parent.parent / "alembic" / "versions"


def test_body_length_constraint_matches_max_chars_setting():
    source = (MIGRATIONS / "0001_scheduled_delivery.py").read_text()

    limits = re.findall(r"char_length\(body\) <= (\d+)", source)

    assert limits == [str(Settings.model_fields["message_max_chars"].default)]
