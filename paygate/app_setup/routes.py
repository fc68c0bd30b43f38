"""Routes simples (hors routers): message d'accueil et favicon."""
from fastapi import FastAPI
from fastapi.responses import Response
from starlette.status import HTTP_204_NO_CONTENT


def register_routes(app: FastAPI) -> None:
    @app.get("/", include_in_schema=False)
    def root():
        return {"message": "Payment-First Signup API"}

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=HTTP_204_NO_CONTENT)
