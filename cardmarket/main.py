import uvicorn

from cardmarket.core.app_factory import create_app

app = create_app()


if __name__ == "__main__":
    # Single worker: the abuse limiter keeps its counters in process memory
    uvicorn.run("cardmarket.main:app", host="0.0.0.0", port=8000, workers=1)
