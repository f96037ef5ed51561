"""
Coursebook - Course browser

Streamlit application for reading a lesson corpus in course order and
reviewing its validation report.

Usage:
    streamlit run app.py
    COURSEBOOK_CONTENT_DIR=path/to/lessons streamlit run app.py
"""

import base64
import mimetypes
import re

import streamlit as st

from coursebook.classroom import load, resolve_relative, split_target
from coursebook.config import load_config
from coursebook.errors import NotFoundError
from coursebook.pipeline import check_course
from coursebook.schemas import IssueKind, Severity
from coursebook.viewer import get_page_css, render


IMG_SRC_RE = re.compile(r'(<img\s+src=")([^"]*)(")')


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

st.set_page_config(
    page_title="Coursebook",
    page_icon="📘",
    layout="wide",
    initial_sidebar_state="expanded",
)


# -----------------------------------------------------------------------------
# Session State Initialization
# -----------------------------------------------------------------------------

def init_session_state():
    """Initialize session state variables."""
    if "config" not in st.session_state:
        st.session_state.config = load_config()

    if "check" not in st.session_state:
        config = st.session_state.config
        st.session_state.check = None
        st.session_state.load_error = None
        if config.content_dir is not None:
            try:
                st.session_state.check = check_course(load(config.content_dir, config), config)
            except NotFoundError as e:
                st.session_state.load_error = str(e)

    if "current_doc_id" not in st.session_state:
        check = st.session_state.check
        if check is None:
            st.session_state.current_doc_id = None
        else:
            st.session_state.current_doc_id = check.sequence.first or next(iter(check.store), None)

    if "view_mode" not in st.session_state:
        st.session_state.view_mode = "lessons"  # lessons, report


# -----------------------------------------------------------------------------
# Sidebar: Course Sequence
# -----------------------------------------------------------------------------

def render_sidebar():
    """Render the sidebar with the course sequence and report summary."""
    st.sidebar.title("📘 Coursebook")

    check = st.session_state.check
    if check is None:
        st.sidebar.error("No course loaded. Set content_dir in coursebook.yaml or COURSEBOOK_CONTENT_DIR.")
        return

    report = check.report
    st.sidebar.markdown(
        f"**{len(check.store)}** documents, **{len(check.sequence)}** in sequence  \n"
        f"**{len(report.errors)}** errors, **{len(report.warnings)}** warnings"
    )

    st.sidebar.divider()

    view_mode = st.sidebar.radio(
        "Select view",
        ["Lessons", "Report"],
        index=["lessons", "report"].index(st.session_state.view_mode),
        horizontal=True,
        label_visibility="collapsed",
    )
    st.session_state.view_mode = view_mode.lower()

    if st.session_state.view_mode == "lessons":
        render_sequence_list()


def render_sequence_list():
    """Render lesson buttons in course order, then the other documents."""
    check = st.session_state.check
    current_id = st.session_state.current_doc_id
    flagged = {issue.document_id for issue in check.report.errors}

    st.sidebar.divider()
    st.sidebar.subheader("Course")

    for position, doc_id in enumerate(check.sequence.identifiers, 1):
        render_document_button(doc_id, f"{position}. ", doc_id == current_id, doc_id in flagged)

    others = [doc_id for doc_id in check.store if doc_id not in check.sequence]
    if others:
        with st.sidebar.expander(f"Other documents ({len(others)})"):
            for doc_id in others:
                render_document_button(doc_id, "", doc_id == current_id, doc_id in flagged, in_expander=True)


def render_document_button(doc_id: str, prefix: str, is_current: bool, has_errors: bool, in_expander: bool = False):
    title = st.session_state.check.store[doc_id].title
    label = prefix + (title[:30] + "..." if len(title) > 30 else title)
    if has_errors:
        label += " ⚠"
    target = st if in_expander else st.sidebar
    if target.button(label, key=f"doc_{doc_id}", disabled=is_current, use_container_width=True):
        select_document(doc_id)


def select_document(doc_id: str):
    """Select a document and update state."""
    st.session_state.current_doc_id = doc_id
    st.rerun()


# -----------------------------------------------------------------------------
# Main Content: Lesson View
# -----------------------------------------------------------------------------

def inline_images(rendered: str, doc_id: str) -> str:
    """Embed corpus images as data URIs; the browser cannot reach the corpus directly."""
    store = st.session_state.check.store

    def replace(m):
        path, _ = split_target(m.group(2))
        asset_id = resolve_relative(doc_id, path)
        if asset_id is None or not store.has_asset(asset_id):
            return m.group(0)
        mime = mimetypes.guess_type(asset_id)[0] or "application/octet-stream"
        data = base64.b64encode(store.path_for(asset_id).read_bytes()).decode("ascii")
        return f"{m.group(1)}data:{mime};base64,{data}{m.group(3)}"

    return IMG_SRC_RE.sub(replace, rendered)


def render_lesson_view():
    """Render the selected document."""
    if st.session_state.check is None:
        st.error(st.session_state.load_error or "No course loaded.")
        st.code("""
# Point the viewer at a lesson corpus:
COURSEBOOK_CONTENT_DIR=path/to/lessons streamlit run app.py
        """)
        return

    doc_id = st.session_state.current_doc_id
    if not doc_id:
        st.info("The course has no documents.")
        return

    document = st.session_state.check.store[doc_id]

    render_navigation_bar(doc_id)

    st.markdown(get_page_css(), unsafe_allow_html=True)
    st.markdown(inline_images(render(document), doc_id), unsafe_allow_html=True)

    issues = [issue for issue in st.session_state.check.report.issues if issue.document_id == doc_id]
    if issues:
        st.divider()
        st.subheader("Issues in this document")
        for issue in issues:
            if issue.severity == Severity.ERROR:
                st.error(issue.message)
            else:
                st.warning(issue.message)


def render_navigation_bar(doc_id: str):
    """Render navigation bar with prev/next buttons."""
    check = st.session_state.check
    nav = check.navigator
    pos, total = check.sequence.position(doc_id)

    prev_id = nav.previous(doc_id)
    next_id = nav.next(doc_id)

    col1, col2, col3 = st.columns([1, 2, 1])

    with col1:
        if prev_id:
            if st.button("← Previous", use_container_width=True):
                select_document(prev_id)

    with col2:
        if pos:
            st.markdown(f"<center>Lesson {pos} of {total}</center>", unsafe_allow_html=True)
        else:
            st.markdown(f"<center>{doc_id}</center>", unsafe_allow_html=True)

    with col3:
        if next_id:
            if st.button("Next →", use_container_width=True):
                select_document(next_id)

    st.divider()


# -----------------------------------------------------------------------------
# Report View
# -----------------------------------------------------------------------------

def render_report_view():
    """Render the validation report grouped by issue kind."""
    if st.session_state.check is None:
        st.error(st.session_state.load_error or "No course loaded.")
        return

    report = st.session_state.check.report
    st.title("Validation Report")

    if not report.issues:
        st.success("All checks passed!")
        return

    summary = report.summary()
    cols = st.columns(len(IssueKind))
    for col, kind in zip(cols, IssueKind):
        col.metric(kind.value.replace("_", " ").title(), summary[kind.value])

    for kind in IssueKind:
        issues = report.by_kind(kind)
        if not issues:
            continue
        with st.expander(f"{kind.value.replace('_', ' ').title()} ({len(issues)})", expanded=True):
            for issue in issues:
                st.markdown(f"- `{issue.document_id}`: {issue.message}")


# -----------------------------------------------------------------------------
# Main App
# -----------------------------------------------------------------------------

def main():
    """Main application entry point."""
    init_session_state()
    render_sidebar()

    if st.session_state.view_mode == "lessons":
        render_lesson_view()
    elif st.session_state.view_mode == "report":
        render_report_view()


if __name__ == "__main__":
    main()
