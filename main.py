from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from database import init_db
from routes import analytics, auth, exams, import_questions, mock_tests, questions, results, session, tools, users

app = FastAPI(title="Aureus CBT")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(session.router)
app.include_router(questions.router)
app.include_router(mock_tests.router)
app.include_router(exams.router)
app.include_router(results.router)
app.include_router(analytics.router)
app.include_router(import_questions.router)
app.include_router(tools.router)
app.include_router(users.router)


@app.on_event("startup")
async def startup_event():
    await init_db()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="127.0.0.1", port=8000, reload=True)
