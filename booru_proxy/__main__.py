"""Run the proxy with uvicorn: ``python -m booru_proxy``."""

import os

import uvicorn


def main() -> None:
    uvicorn.run(
        "booru_proxy.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "3000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
