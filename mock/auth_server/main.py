from fastapi import FastAPI, Header, HTTPException
from typing import Optional

app = FastAPI(title="Mock Auth Server", version="1.0.0")

# Bearer token "user-<id>" resolves to user id "<id>"
TOKEN_PREFIX = "user-"

@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/auth/v1/user")
def get_user(authorization: Optional[str] = Header(None)):
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.startswith(TOKEN_PREFIX):
        raise HTTPException(status_code=401, detail="invalid token")
    return {"id": token[len(TOKEN_PREFIX):]}
