import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "pulse_hub.main:app",
        host=os.getenv("HUB_HOST", "0.0.0.0"),
        port=int(os.getenv("HUB_PORT", "8000")),
        log_config=None,  # JSON logging is configured by the app itself
    )


if __name__ == "__main__":
    main()
