"""
Pipeline - Validate and publish a course corpus.

Steps:
1. Load documents and assets (fatal NotFoundError if the root is missing)
2. Resolve links, collecting dangling ones
3. Cross-check previous/next markers and derive the course sequence
4. Analyse the link graph (orphans, next-lesson cycles)
5. Render every document to a standalone page
6. Write pages, index, assets and report.json
"""

import json
import logging
import shutil
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from coursebook.classroom import (
    DocumentStore,
    LinkResolver,
    SequenceNavigator,
    build_link_graph,
    graph_issues,
    load,
)
from coursebook.config import CourseConfig
from coursebook.schemas import (
    CourseSequence,
    Issue,
    IssueKind,
    ResolvedLink,
    Severity,
    ValidationReport,
)
from coursebook.viewer import output_name, render_index, render_page

logger = logging.getLogger(__name__)

DEFAULT_INDEX_NAME = "index.html"
FALLBACK_INDEX_NAME = "contents.html"


@dataclass
class CourseCheck:
    """Outcome of validating a loaded corpus."""
    store: DocumentStore
    resolved: dict[str, set[ResolvedLink]]
    navigator: SequenceNavigator
    sequence: CourseSequence
    report: ValidationReport


@dataclass
class BuildResult:
    """Outcome of a full build."""
    check: CourseCheck
    rendered: dict[str, str] = field(default_factory=dict)   # identifier -> page HTML
    written: list[Path] = field(default_factory=list)
    index_name: str = DEFAULT_INDEX_NAME

    @property
    def report(self) -> ValidationReport:
        return self.check.report

    @property
    def store(self) -> DocumentStore:
        return self.check.store


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------

def check_course(store: DocumentStore, config: Optional[CourseConfig] = None) -> CourseCheck:
    """Resolve links, check the lesson sequence and analyse the link graph."""
    config = config or CourseConfig()

    logger.info("Resolving links...")
    resolver = LinkResolver(store, config)
    resolved = resolver.resolve_all()

    logger.info("Checking lesson sequence...")
    navigator = SequenceNavigator(store, config)
    navigator.check()
    sequence = navigator.sequence()

    graph = build_link_graph(store.keys(), resolved)
    entry_points = navigator.heads() or ([sequence.first] if sequence.first else [])

    report = ValidationReport(root=str(store.root))
    report.extend(resolver.issues())
    report.extend(navigator.issues())
    report.extend(graph_issues(graph, navigator, entry_points))
    report.stats = {
        "documents": len(store),
        "assets": len(store.assets),
        "links": sum(len(doc.links) for doc in store.values()),
        "code_blocks": sum(len(doc.code_blocks) for doc in store.values()),
        "sequence_length": len(sequence),
        "link_graph_edges": graph.number_of_edges(),
    }

    return CourseCheck(
        store=store,
        resolved=resolved,
        navigator=navigator,
        sequence=sequence,
        report=report,
    )


# -----------------------------------------------------------------------------
# Rendering
# -----------------------------------------------------------------------------

def choose_index_name(store: DocumentStore) -> str:
    """First of index.html, contents.html, contents-1.html, ... that no page or asset uses."""
    taken = {output_name(doc_id) for doc_id in store} | set(store.assets)
    if DEFAULT_INDEX_NAME not in taken:
        return DEFAULT_INDEX_NAME
    candidate = FALLBACK_INDEX_NAME
    counter = 0
    while candidate in taken:
        counter += 1
        candidate = f"{Path(FALLBACK_INDEX_NAME).stem}-{counter}.html"
    return candidate


def render_documents(
    check: CourseCheck,
    config: Optional[CourseConfig] = None,
    index_name: str = DEFAULT_INDEX_NAME,
) -> tuple[dict[str, str], list[Issue]]:
    """
    Render every document to a full page.

    A failure in one document is logged and reported; it never stops the
    others, and the failed document produces no output at all.

    Returns:
        Tuple of ({identifier: page HTML}, render failure issues)
    """
    config = config or CourseConfig()
    rendered: dict[str, str] = {}
    failures: list[Issue] = []

    def render_one(doc_id: str) -> str:
        return render_page(
            check.store[doc_id],
            navigator=check.navigator,
            sequence=check.sequence,
            site_title=config.site_title,
            config=config,
            index_name=index_name,
        )

    def record_failure(doc_id: str, e: Exception):
        logger.error(f"Failed to render {doc_id}: {e}")
        failures.append(Issue(
            kind=IssueKind.RENDER_FAILURE,
            severity=Severity.ERROR,
            document_id=doc_id,
            message=f"{type(e).__name__}: {e}",
        ))

    if config.workers > 1:
        with ThreadPoolExecutor(max_workers=config.workers) as executor:
            futures = {executor.submit(render_one, doc_id): doc_id for doc_id in check.store}
            for future in as_completed(futures):
                doc_id = futures[future]
                try:
                    rendered[doc_id] = future.result()
                except Exception as e:
                    record_failure(doc_id, e)
    else:
        for doc_id in check.store:
            try:
                rendered[doc_id] = render_one(doc_id)
            except Exception as e:
                record_failure(doc_id, e)

    # Keep store order regardless of completion order
    ordered = {doc_id: rendered[doc_id] for doc_id in check.store if doc_id in rendered}
    logger.info(f"Rendered {len(ordered)}/{len(check.store)} documents")
    return ordered, failures


# -----------------------------------------------------------------------------
# Output
# -----------------------------------------------------------------------------

def _write_text(path: Path, text: str):
    """Write a file in one step, so readers never see a partial page."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_text(text, encoding="utf-8")
    tmp.replace(path)


def copy_assets(
    store: DocumentStore,
    output_dir: Path,
    reserved: Optional[set[str]] = None,
) -> tuple[list[Path], list[Issue]]:
    """
    Copy every asset file into the output tree at the same relative path.

    Assets whose path is in `reserved` (pages, index and report) are
    skipped and reported, so they never overwrite generated output.

    Returns:
        Tuple of (copied paths, collision issues)
    """
    reserved = reserved or set()
    copied = []
    collisions = []
    for asset_id in sorted(store.assets):
        if asset_id in reserved:
            logger.warning(f"Asset {asset_id} not copied: it would overwrite generated output")
            collisions.append(Issue(
                kind=IssueKind.OUTPUT_COLLISION,
                severity=Severity.WARNING,
                document_id=asset_id,
                message="asset not copied: a generated file has the same path",
            ))
            continue
        target = output_dir / asset_id
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(store.path_for(asset_id), target)
        copied.append(target)
    logger.info(f"Copied {len(copied)} assets")
    return copied, collisions


def save_report(report: ValidationReport, path: Path):
    """Save the validation report as JSON."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = json.loads(report.model_dump_json())
    data["summary"] = report.summary()
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"Saved report to: {path}")


def log_report(report: ValidationReport, limit: int = 10):
    """Log issues, showing the first `limit` of them."""
    if not report.issues:
        logger.info("  All checks passed!")
        return

    logger.warning(
        f"Found {len(report.issues)} issues "
        f"({len(report.errors)} errors, {len(report.warnings)} warnings):"
    )
    for issue in report.issues[:limit]:
        logger.warning(f"  - {issue}")
    if len(report.issues) > limit:
        logger.warning(f"  ... and {len(report.issues) - limit} more")


def build_course(
    root: str | Path,
    config: Optional[CourseConfig] = None,
    output_dir: Optional[Path] = None,
) -> BuildResult:
    """
    Run the whole pipeline and write the site.

    Args:
        root: Corpus root directory
        config: Pipeline settings (defaults apply if None)
        output_dir: Overrides config.output_dir

    Returns:
        BuildResult with the report, rendered pages and written paths

    Raises:
        NotFoundError: If root does not exist
    """
    config = config or CourseConfig()
    output_dir = Path(output_dir or config.output_dir)
    if output_dir != config.output_dir:
        config = config.model_copy(update={"output_dir": output_dir})

    logger.info(f"Loading documents from {root}...")
    store = load(root, config)

    check = check_course(store, config)

    logger.info("Rendering documents...")
    index_name = choose_index_name(store)
    rendered, failures = render_documents(check, config, index_name)
    check.report.extend(failures)
    check.report.stats["rendered"] = len(rendered)

    result = BuildResult(check=check, rendered=rendered, index_name=index_name)

    logger.info(f"Writing site to {output_dir}...")
    for doc_id, page in rendered.items():
        path = output_dir / output_name(doc_id)
        _write_text(path, page)
        result.written.append(path)

    index_path = output_dir / index_name
    _write_text(index_path, render_index(store, check.sequence, config.site_title))
    result.written.append(index_path)

    if config.copy_assets:
        reserved = {output_name(doc_id) for doc_id in rendered} | {index_name, config.report_name}
        copied, collisions = copy_assets(store, output_dir, reserved)
        result.written.extend(copied)
        check.report.extend(collisions)

    save_report(check.report, output_dir / config.report_name)
    log_report(check.report)
    return result
