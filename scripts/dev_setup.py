"""Write the local .env file for StorySync and create the database tables."""
from __future__ import annotations

import argparse
import secrets
import shutil
import sys
from pathlib import Path
from typing import Dict

from dotenv import dotenv_values

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from storysync import create_app  # noqa: E402
from storysync.extensions import db  # noqa: E402

DEFAULT_ENV_PATH = REPO_ROOT / ".env"
BACKUP_SUFFIX = ".bak"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create or update the .env file used for local development and initialize the database."
    )
    parser.add_argument(
        "--flask-app",
        default="storysync:create_app",
        help="Entry point used by Flask (default: storysync:create_app)",
    )
    parser.add_argument(
        "--secret-key",
        help="Secret key for Flask sessions. Generated when neither this flag nor .env provides one.",
    )
    parser.add_argument("--openai-api-key", help="API key for the writing assistant (optional).")
    parser.add_argument("--openai-model", help="Model used by the writing assistant (optional).")
    parser.add_argument(
        "--llm-api-base",
        help="Base URL of an OpenAI-compatible server, stored as OPENAI_BASE_URL (optional).",
    )
    parser.add_argument(
        "--model-path",
        help="Local Transformers model directory, stored as TEXT_GENERATOR_MODEL_PATH (optional).",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL (optional).")
    parser.add_argument(
        "--env-path",
        type=Path,
        default=DEFAULT_ENV_PATH,
        help="Path to the .env file that should be created/updated.",
    )
    parser.add_argument(
        "--skip-db",
        action="store_true",
        help="Only update the .env file without touching the database.",
    )
    return parser.parse_args()


def write_env(path: Path, values: Dict[str, str]) -> None:
    if path.exists():
        backup_path = path.with_suffix(path.suffix + BACKUP_SUFFIX)
        shutil.copy(path, backup_path)
        print(f"Existing {path.name} backed up to {backup_path.name}.")
    lines = [f"{key}={value}" for key, value in values.items()]
    path.write_text("\n".join(lines) + "\n")
    print(f"Updated environment variables written to {path}.")


def update_env_file(args: argparse.Namespace) -> Dict[str, str]:
    env_data = {key: value for key, value in dotenv_values(args.env_path).items() if value is not None}
    env_data["FLASK_APP"] = args.flask_app

    optional_values = {
        "SECRET_KEY": args.secret_key,
        "OPENAI_API_KEY": args.openai_api_key,
        "OPENAI_MODEL": args.openai_model,
        "OPENAI_BASE_URL": args.llm_api_base,
        "TEXT_GENERATOR_MODEL_PATH": args.model_path,
        "DATABASE_URL": args.database_url,
    }
    env_data.update({key: value for key, value in optional_values.items() if value})
    env_data.setdefault("SECRET_KEY", secrets.token_hex(32))

    write_env(args.env_path, env_data)
    return env_data


def initialize_database() -> None:
    app = create_app()
    with app.app_context():
        db.create_all()
    print("Database initialized (instance/storysync.db unless DATABASE_URL is set).")


def main() -> None:
    args = parse_args()
    env_values = update_env_file(args)

    if not args.skip_db:
        initialize_database()
    else:
        print("Database initialization skipped.")

    print("\nSetup complete! Summary:")
    for key in sorted(env_values):
        value = env_values[key]
        if key in {"SECRET_KEY", "OPENAI_API_KEY"}:
            value = value[:4] + "…"
        print(f"  {key}={value}")


if __name__ == "__main__":
    main()
