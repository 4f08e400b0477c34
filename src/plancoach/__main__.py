"""Run the API with uvicorn: ``python -m plancoach``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "plancoach.api.main:app",
        host=os.getenv("PLANCOACH_HOST", "127.0.0.1"),
        port=int(os.getenv("PLANCOACH_PORT", "8000")),
        reload=os.getenv("PLANCOACH_ENV", "").lower() == "development",
    )


if __name__ == "__main__":
    main()
