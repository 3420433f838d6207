import os
from dataclasses import dataclass
from dotenv import load_dotenv

from .errors import ConfigurationError

# Load .env at import time
load_dotenv()


DEFAULT_DOCUMENT_PATH = "A_Simple_Guide_to_Retrieval_Augmented_Ge_v4_MEAP.pdf"
DEFAULT_WEB_PAGE_URL = (
	"https://learn.microsoft.com/en-us/azure/databricks/generative-ai/"
	"tutorials/ai-cookbook/fundamentals-retrieval-augmented-generation"
)


def _flag(name: str, default: str) -> bool:
	return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass(frozen=True)
class Settings:
	# Checked lazily through require_api_key() so a missing key is reported, not raised on import
	openai_api_key: str | None
	llm_endpoint: str
	llm_model_id: str
	llm_temperature: float
	llm_max_tokens: int
	llm_timeout: float

	embedding_model_id: str
	device: str
	batch_size_embed: int
	normalize_embeddings: bool

	lancedb_path: str
	lancedb_table: str
	chunk_size_tokens: int
	chunk_overlap_tokens: int
	search_top_k: int
	min_relevance: float
	ingest_workers: int

	readiness_attempts: int
	readiness_initial_delay: float
	readiness_max_delay: float
	readiness_timeout: float

	document_path: str
	web_page_url: str
	log_level: str
	prefer_docling_api: bool

	def require_api_key(self) -> str:
		if self.openai_api_key is None or not self.openai_api_key.strip():
			raise ConfigurationError("OpenAI API key is missing.")
		return self.openai_api_key


def load_settings() -> Settings:
	"""Build settings from the current environment (after .env has been loaded)."""
	return Settings(
		openai_api_key=os.getenv("OPENAI_API_KEY"),
		llm_endpoint=os.getenv("LLM_ENDPOINT", "https://api.openai.com/v1/chat/completions"),
		llm_model_id=os.getenv("LLM_MODEL_ID", "gpt-4o-mini"),
		llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.0")),
		llm_max_tokens=int(os.getenv("LLM_MAX_TOKENS", "1024")),
		llm_timeout=float(os.getenv("LLM_TIMEOUT", "60.0")),
		embedding_model_id=os.getenv("EMBEDDING_MODEL_ID", "sentence-transformers/all-MiniLM-L6-v2"),
		device=os.getenv("DEVICE", "cpu"),
		batch_size_embed=int(os.getenv("BATCH_SIZE_EMBED", "64")),
		normalize_embeddings=_flag("NORMALIZE_EMBEDDINGS", "true"),
		lancedb_path=os.getenv("LANCEDB_PATH", "./lancedb_data"),
		lancedb_table=os.getenv("LANCEDB_TABLE", "partitions"),
		chunk_size_tokens=int(os.getenv("CHUNK_SIZE_TOKENS", "1000")),
		chunk_overlap_tokens=int(os.getenv("CHUNK_OVERLAP_TOKENS", "100")),
		search_top_k=int(os.getenv("SEARCH_TOP_K", "5")),
		min_relevance=float(os.getenv("MIN_RELEVANCE", "0.0")),
		ingest_workers=int(os.getenv("INGEST_WORKERS", "2")),
		readiness_attempts=int(os.getenv("READINESS_ATTEMPTS", "10")),
		readiness_initial_delay=float(os.getenv("READINESS_INITIAL_DELAY", "1.0")),
		readiness_max_delay=float(os.getenv("READINESS_MAX_DELAY", "30.0")),
		readiness_timeout=float(os.getenv("READINESS_TIMEOUT", "600.0")),
		document_path=os.getenv("RAGBOT_DOCUMENT_PATH", DEFAULT_DOCUMENT_PATH),
		web_page_url=os.getenv("RAGBOT_WEB_PAGE_URL", DEFAULT_WEB_PAGE_URL),
		log_level=os.getenv("LOG_LEVEL", "INFO"),
		# Docling CLI is used as fallback when the Python API is disabled or fails
		prefer_docling_api=_flag("PREFER_DOCLING_API", "true"),
	)


settings = load_settings()
