"""Streamlit chat playground driving the assistant without WhatsApp."""

import tempfile
from pathlib import Path

import streamlit as st

from maestro import InboundMessage, KnowledgePipeline, create_assistant
from maestro.config import config
from maestro.decision import format_time_of_day

DEFAULT_CONVERSATION_ID = "playground"

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "assistant": None,
            "pipeline": None,
            "system_ready": False,
            "last_outcome": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def is_system_ready() -> bool:
        """Check if the system is properly initialized.

        Returns:
            bool: True if the assistant and the ingestion pipeline exist.
        """
        return (
            st.session_state.get("assistant") is not None
            and st.session_state.get("pipeline") is not None
        )


def validate_configuration() -> bool:
    """Validate application configuration and show user feedback.

    Returns:
        bool: True if configuration is valid, False otherwise.
    """
    try:
        config.validate()
    except ValueError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


def initialize_system() -> bool:
    """Build the assistant and the ingestion pipeline.

    Returns:
        bool: True if initialization succeeds, False otherwise.
    """
    try:
        with st.spinner("Initializing system..."):
            pipeline = KnowledgePipeline()
            st.session_state.pipeline = pipeline
            st.session_state.assistant = create_assistant(
                knowledge_index=pipeline.knowledge_index
            )
            st.session_state.system_ready = True

        logger.info("Assistant initialized successfully")
        st.success("System initialized successfully!")

    except (ValueError, RuntimeError, OSError) as e:
        logger.exception("Failed to initialize system")
        st.error(f"Failed to initialize system: {e}")
        return False
    else:
        return True


def process_document(uploaded_file) -> bool:  # noqa: ANN001
    """Ingest an uploaded file into the knowledge index.

    Returns:
        bool: True if document processing succeeds, False otherwise.
    """
    try:
        suffix = Path(uploaded_file.name).suffix
        with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
            tmp_file.write(uploaded_file.getbuffer())
            tmp_file_path = Path(tmp_file.name)

        with st.spinner(f"Indexing '{uploaded_file.name}'..."):
            added = st.session_state.pipeline.process_document(tmp_file_path)

        tmp_file_path.unlink()
        st.success(f"'{uploaded_file.name}' indexed: {added} chunks written.")

    except (OSError, ValueError, RuntimeError) as e:
        logger.exception("Document processing failed")
        st.error(f"Failed to process document: {e}")
        return False
    else:
        return True


def render_sidebar() -> str:
    """Render the sidebar and return the active conversation id.

    Returns:
        str: The conversation identity typed by the user.
    """
    with st.sidebar:
        st.header("System Configuration")

        if (
            st.button("Initialize System", use_container_width=True)
            and validate_configuration()
            and initialize_system()
        ):
            st.rerun()

        conversation_id = st.text_input(
            "Conversation ID",
            value=DEFAULT_CONVERSATION_ID,
            help="Stands in for the sender's phone number",
        )

        st.divider()
        st.subheader("System Status")
        config_status = "Valid" if validate_configuration() else "Invalid"
        st.write(f"**Configuration:** {config_status}")
        st.write(
            "**System:** Ready"
            if SessionState.is_system_ready()
            else "**System:** Not Initialized"
        )

        if SessionState.is_system_ready():
            st.divider()
            st.subheader("Knowledge Base")
            uploaded_file = st.file_uploader(
                "Upload a PDF or TXT document", type=["pdf", "txt"]
            )
            if uploaded_file and st.button(
                "Index Document", use_container_width=True
            ):
                process_document(uploaded_file)

            st.divider()
            st.subheader("Conversation")
            if st.button("Clear History", use_container_width=True):
                st.session_state.assistant.store.clear(conversation_id)
                st.session_state.last_outcome = None
                st.success("Conversation cleared!")
                st.rerun()

    return conversation_id or DEFAULT_CONVERSATION_ID


def render_conversation(conversation_id: str) -> None:
    """Render the stored window, oldest message first."""
    window = st.session_state.assistant.store.read(conversation_id)
    if not window:
        st.info(
            "No messages yet. Split a question over several messages "
            "to see the assistant wait."
        )
        return

    for message in window:
        with st.chat_message(message.role):
            st.caption(format_time_of_day(message.timestamp))
            st.markdown(message.content or "_[attachment]_")


def render_chat_input(conversation_id: str) -> None:
    """Send typed messages through the assistant like a WhatsApp turn."""
    text = st.chat_input("Type a message...")
    if text is None:
        return

    with st.spinner("Thinking..."):
        reply = st.session_state.assistant.handle_message(
            InboundMessage(conversation_id=conversation_id, text=text)
        )
    st.session_state.last_outcome = "replied" if reply is not None else "waiting"
    st.rerun()


def main() -> None:
    """Main entry point for the Streamlit playground."""
    st.set_page_config(page_title="Maestro Playground", layout="wide")

    SessionState.initialize()

    st.title("Maestro Playground")
    st.markdown("---")

    conversation_id = render_sidebar()

    if not SessionState.is_system_ready():
        st.info("Please initialize the system using the sidebar to get started.")
        return

    render_conversation(conversation_id)
    if st.session_state.last_outcome == "waiting":
        st.caption("Assistant is waiting for the rest of your message...")
    render_chat_input(conversation_id)


if __name__ == "__main__":
    main()
