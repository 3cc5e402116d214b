import os
import pathlib
from typing import Optional


def load_env_files(
    *,
    root_dir: Optional[str] = None,
    env_files: Optional[list[str]] = None,
) -> None:
    """Load HubSpot/Postgres/SMTP variables from .env.local and .env.

    Existing environment variables always win so a deployment can override
    any file value.
    """

    def _parse_and_set(path: str) -> None:
        p = pathlib.Path(path)
        if not p.is_file():
            return
        for raw in p.read_text(encoding="utf-8").splitlines():
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            if line.startswith("export "):
                line = line[len("export ") :]
            if "=" not in line:
                continue
            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip()
            if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
                val = val[1:-1]
            if key and key not in os.environ:
                os.environ[key] = val

    if root_dir is None:
        # Working directory first, then the source checkout root.
        base_dir = os.path.dirname(os.path.abspath(__file__))
        roots = [os.getcwd(), os.path.abspath(os.path.join(base_dir, os.pardir, os.pardir, os.pardir))]
    else:
        roots = [root_dir]

    if env_files is None:
        env_files = [".env.local", ".env"]

    for root in roots:
        for rel in env_files:
            _parse_and_set(os.path.join(root, rel))
