import logging
import os

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("entrypoint")


def main() -> None:
  """Launch the service; migrations run in the deploy pipeline."""
  port = os.getenv("PORT", "3500")
  logger.info("Starting campus-push on port %s (run alembic upgrade head in deploy pipeline)...", port)
  # Replace the current process so uvicorn receives signals directly.
  os.execvp("uvicorn", ["uvicorn", "campus_push.main:app", "--host", "0.0.0.0", "--port", port, "--no-server-header"])


if __name__ == "__main__":
  main()
