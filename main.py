import logging
import logging.config
import os
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from auth import (
    AdminShell,
    SessionProvider,
    bearer_token,
    get_current_admin,
    get_session_provider,
)
from database import DocumentStore, get_store
from errors import ValidationFailure, WriteFailure
from managers import (
    Dashboard,
    EntityCrudManager,
    MessageManager,
    ProjectManager,
    SettingsManager,
    SkillManager,
)
from public import render_about, render_home, render_projects, render_site_header, submit_contact
from schemas import ContactForm, LoginRequest, ProjectForm, Settings, SkillForm, Token

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(levelname)s %(asctime)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "root": {"handlers": ["console"], "level": os.getenv("LOG_LEVEL", "INFO")},
}

logging.config.dictConfig(LOGGING)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# ==================
# FastAPI app config
# ==================
app = FastAPI(title="Portfolio API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def failed(page):
    """Turn a failed manager operation into an HTTP error carrying the page state."""
    status = page.error.status_code if page.error is not None else 500
    raise HTTPException(status_code=status, detail=page.snapshot())

# ======
# Health
# ======
@app.get("/")
def root():
    return {"status": "ok", "service": "portfolio-api"}

@app.get("/test")
def test_database(store: DocumentStore = Depends(get_store)):
    status = {
        "backend": "running",
        "database": "not-available",
        "database_url": "set" if os.getenv("DATABASE_URL") else "not-set",
        "database_name": "set" if os.getenv("DATABASE_NAME") else "not-set",
        "collections": [],
    }
    try:
        status["collections"] = store.list_collection_names()[:10]
        status["database"] = "connected"
    except Exception as e:
        status["database"] = f"error: {str(e)[:80]}"
    return status

# ===========
# Public site
# ===========
@app.get("/api/home")
async def home(store: DocumentStore = Depends(get_store)):
    return await render_home(store)

@app.get("/api/projects")
async def list_projects(store: DocumentStore = Depends(get_store)):
    return await render_projects(store)

@app.get("/api/about")
async def about(store: DocumentStore = Depends(get_store)):
    return await render_about(store)

@app.get("/api/header")
async def header(store: DocumentStore = Depends(get_store)):
    return await render_site_header(store)

@app.post("/api/contact")
async def contact(form: ContactForm, store: DocumentStore = Depends(get_store)):
    try:
        message_id = await submit_contact(store, form)
    except ValidationFailure as e:
        raise HTTPException(status_code=400, detail={"message": str(e), "fields": e.fields})
    except WriteFailure:
        logger.exception("Error sending message")
        raise HTTPException(status_code=502, detail="Failed to send message")
    return {"id": message_id, "message": "Message sent successfully!"}

# ====
# Auth
# ====
@app.post("/api/auth/login", response_model=Token)
def login(data: LoginRequest, provider: SessionProvider = Depends(get_session_provider)):
    token = provider.login(data.email, data.password)
    if token is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return Token(access_token=token)

@app.get("/api/auth/session")
def session(
    authorization: Optional[str] = Header(None),
    provider: SessionProvider = Depends(get_session_provider),
):
    current = provider.get_current_session(bearer_token(authorization))
    if current is None:
        return {"authenticated": False}
    return {"authenticated": True, "email": current.email, "expires_at": current.expires_at.isoformat()}

@app.post("/api/auth/logout")
def logout(
    authorization: Optional[str] = Header(None),
    provider: SessionProvider = Depends(get_session_provider),
):
    return AdminShell(provider).logout(bearer_token(authorization))._asdict()

@app.get("/api/admin/shell")
def admin_shell(
    path: str = Query("/admin"),
    authorization: Optional[str] = Header(None),
    provider: SessionProvider = Depends(get_session_provider),
):
    return AdminShell(provider).mount(path, bearer_token(authorization))._asdict()

# =============
# Admin console
# =============
@app.get("/api/admin/dashboard")
async def dashboard(store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    page = Dashboard(store)
    if not await page.load():
        failed(page)
    return page.snapshot()

async def list_entities(manager: EntityCrudManager):
    if not await manager.load():
        failed(manager)
    return manager.snapshot()

async def create_entity(manager: EntityCrudManager, form: dict):
    await manager.load()
    if not await manager.submit(form):
        failed(manager)
    return manager.snapshot()

async def update_entity(manager: EntityCrudManager, item_id: str, form: dict):
    if not await manager.load():
        failed(manager)
    item = manager.find(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Not found")
    manager.select_for_edit(item)
    if not await manager.submit(form):
        failed(manager)
    return manager.snapshot()

async def delete_entity(manager, item_id: str, confirm: bool):
    await manager.load()
    if not await manager.remove(item_id, lambda _prompt: confirm) and manager.error is not None:
        failed(manager)
    return manager.snapshot()

# Projects
@app.get("/api/admin/projects")
async def admin_list_projects(store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    return await list_entities(ProjectManager(store))

@app.post("/api/admin/projects")
async def admin_create_project(
    form: ProjectForm, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)
):
    return await create_entity(ProjectManager(store), form.model_dump())

@app.put("/api/admin/projects/{project_id}")
async def admin_update_project(
    project_id: str, form: ProjectForm, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)
):
    return await update_entity(ProjectManager(store), project_id, form.model_dump(exclude_unset=True))

@app.delete("/api/admin/projects/{project_id}")
async def admin_delete_project(
    project_id: str,
    confirm: bool = False,
    store: DocumentStore = Depends(get_store),
    _=Depends(get_current_admin),
):
    return await delete_entity(ProjectManager(store), project_id, confirm)

# Skills
@app.get("/api/admin/skills")
async def admin_list_skills(store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    manager = SkillManager(store)
    data = await list_entities(manager)
    data["categories"] = manager.categories
    return data

@app.post("/api/admin/skills")
async def admin_create_skill(form: SkillForm, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    return await create_entity(SkillManager(store), form.model_dump())

@app.put("/api/admin/skills/{skill_id}")
async def admin_update_skill(
    skill_id: str, form: SkillForm, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)
):
    return await update_entity(SkillManager(store), skill_id, form.model_dump(exclude_unset=True))

@app.delete("/api/admin/skills/{skill_id}")
async def admin_delete_skill(
    skill_id: str,
    confirm: bool = False,
    store: DocumentStore = Depends(get_store),
    _=Depends(get_current_admin),
):
    return await delete_entity(SkillManager(store), skill_id, confirm)

# Messages
@app.get("/api/admin/messages")
async def admin_list_messages(store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    manager = MessageManager(store)
    if not await manager.load():
        failed(manager)
    data = manager.snapshot()
    data["unread"] = manager.unread_count
    return data

@app.post("/api/admin/messages/{message_id}/read")
async def admin_mark_message_read(
    message_id: str, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)
):
    manager = MessageManager(store)
    if not await manager.mark_as_read(message_id):
        failed(manager)
    return manager.snapshot()

@app.delete("/api/admin/messages/{message_id}")
async def admin_delete_message(
    message_id: str,
    confirm: bool = False,
    store: DocumentStore = Depends(get_store),
    _=Depends(get_current_admin),
):
    return await delete_entity(MessageManager(store), message_id, confirm)

# Settings
@app.get("/api/admin/settings")
async def admin_get_settings(store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)):
    manager = SettingsManager(store)
    if not await manager.load():
        failed(manager)
    return manager.snapshot()

@app.put("/api/admin/settings")
async def admin_save_settings(
    payload: Settings, store: DocumentStore = Depends(get_store), _=Depends(get_current_admin)
):
    manager = SettingsManager(store)
    manager.replace(payload)
    if not await manager.submit():
        failed(manager)
    return manager.snapshot()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
