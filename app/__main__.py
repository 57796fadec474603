import os

import uvicorn

if __name__ == "__main__":
  uvicorn.run("app.main:app", host=os.getenv("PUSHRELAY_HOST", "0.0.0.0"), port=int(os.getenv("PUSHRELAY_PORT", "8080")))
