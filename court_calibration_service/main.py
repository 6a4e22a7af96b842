"""Run the court calibration API with uvicorn."""
import uvicorn

from court_calibration.config import HOST, LOG_LEVEL, PORT


def main():
    uvicorn.run(
        "app:app",
        host=HOST,
        port=PORT,
        log_level=LOG_LEVEL.lower(),
        workers=1  # Sessions live in process memory
    )


if __name__ == "__main__":
    main()
