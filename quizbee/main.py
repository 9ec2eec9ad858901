# quizbee/main.py
import os
from typing import Optional

import uvicorn
from fastapi import FastAPI

from quizbee.api.quiz_routes import router
from quizbee.chat import ChatInterpreter
from quizbee.llm_client import ModelGateway, get_gateway
from quizbee.quiz_manager import REDIS_URL, QuizManager
from quizbee.synthesizer import QuizSynthesizer


def create_app(
    gateway: Optional[ModelGateway] = None,
    quiz_manager: Optional[QuizManager] = None,
    synthesizer: Optional[QuizSynthesizer] = None,
) -> FastAPI:
    gateway = gateway if gateway is not None else get_gateway()

    app = FastAPI(title="QuizBee")
    app.state.quiz_manager = quiz_manager if quiz_manager is not None else QuizManager(REDIS_URL)
    app.state.synthesizer = synthesizer if synthesizer is not None else QuizSynthesizer(gateway)
    app.state.interpreter = ChatInterpreter(gateway)
    app.include_router(router)

    @app.on_event("startup")
    async def startup_event():
        # start Redis pubsub listener in background
        await app.state.quiz_manager.start_listener()

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.quiz_manager.stop_listener()

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("quizbee.main:app", host="0.0.0.0", port=int(os.getenv("PORT", 8080)))
