import logging
import os

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import inspect, text

from quizapp import models
from quizapp.core import config, security
from quizapp.core.auth import check_login_expires, save_back
from quizapp.core.csrf import CSRFMiddleware
from quizapp.core.errors import register_exception_handlers
from quizapp.core.method_override import MethodOverrideMiddleware
from quizapp.core.sessions import DatabaseSessionMiddleware
from quizapp.core.templates import render, resource_path
from quizapp.database import SessionLocal, engine
from quizapp.routers import api, auth, quiz, users

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Quiz"
)

# Middleware: the last added runs first.
app.add_middleware(CSRFMiddleware)
app.add_middleware(
    DatabaseSessionMiddleware,
    session_factory=SessionLocal,
    secret_key=config.SECRET_KEY,
    cookie_name=config.SESSION_COOKIE,
    max_age=config.SESSION_MAX_AGE,
    cleanup_interval=config.SESSION_CLEANUP_INTERVAL,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
)
app.add_middleware(MethodOverrideMiddleware)

register_exception_handlers(app)

# Create DB tables
models.Base.metadata.create_all(bind=engine)

# Columns added after the first release: table -> {column: DDL type}
MIGRATIONS = {
    "users": {"token": "VARCHAR", "photo_id": "INTEGER"},
    "quizzes": {"attachment_id": "INTEGER"},
}

# Auto-Migrate (Support both SQLite and Postgres)
def run_migrations():
    inspector = inspect(engine)
    for table, new_columns in MIGRATIONS.items():
        if not inspector.has_table(table):
            continue
        columns = [col['name'] for col in inspector.get_columns(table)]
        for column, ddl in new_columns.items():
            if column not in columns:
                logger.info("Migrating DB: adding %s.%s", table, column)
                with engine.begin() as conn:
                    conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {column} {ddl}"))

run_migrations()

# Mount bundled static files (CSS, JS) - Read Only
app.mount("/static", StaticFiles(directory=resource_path("static")), name="static")

# Uploaded attachments when there is no cloud storage - Writable
os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")

# Include Routers
app.include_router(api.router)
app.include_router(auth.router, tags=["session"])
app.include_router(users.router, tags=["users"])
app.include_router(quiz.router, tags=["quizzes"])


# Initialize Admin User on Startup
@app.on_event("startup")
def create_initial_user():
    db = SessionLocal()
    try:
        if not db.query(models.User).filter(models.User.username == "admin").first():
            admin = models.User(username="admin", is_admin=True, token=security.create_token())
            admin.set_password(config.ADMIN_PASSWORD)
            db.add(admin)
            db.commit()
            logger.info("Created the admin user")
    finally:
        db.close()


@app.get("/", dependencies=[Depends(check_login_expires), Depends(save_back)])
async def read_root(request: Request):
    return render(request, "index.html")


@app.get("/author", dependencies=[Depends(check_login_expires), Depends(save_back)])
async def author_page(request: Request):
    return render(request, "author.html")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=config.DEBUG)
