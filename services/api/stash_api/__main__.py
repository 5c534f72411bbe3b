import uvicorn

from .config import get_port

if __name__ == "__main__":
    uvicorn.run("stash_api.main:app", host="0.0.0.0", port=get_port())
