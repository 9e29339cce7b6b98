from app.services.context_store import ContextStore
from app.services.ingestion import IncomingMessage, normalize, resolve_sender_handle
from app.services.orchestrator import HandleOutcome, Orchestrator
from app.services.polling import PullLoop
from app.services.result import Result
