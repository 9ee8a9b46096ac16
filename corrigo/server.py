"""pygls LSP server for corrigo."""

from lsprotocol import types
from pygls.lsp import server as pygls_server

from corrigo import analyzer as corrigo_analyzer
from corrigo import config as corrigo_config
from corrigo import errors, patch, rules, text
from corrigo.rules import base

FIX_ALL_KIND: str = "source.fixAll.corrigo"

server = pygls_server.LanguageServer("corrigo", "v0.1.0")
_cfg = corrigo_config.load_config()
analyzer = corrigo_analyzer.Analyzer(
    rules.registry.resolve(_cfg.linter, organize_imports=_cfg.organize_imports.enabled)
)

_SEVERITIES: dict[base.Severity, types.DiagnosticSeverity] = {
    base.Severity.ERROR: types.DiagnosticSeverity.Error,
    base.Severity.WARN: types.DiagnosticSeverity.Warning,
    base.Severity.INFO: types.DiagnosticSeverity.Information,
}


def _to_lsp_range(index: text.LineIndex, text_range: text.TextRange) -> types.Range:
    """Convert a code-point range to an LSP range in UTF-16 columns."""
    start_line = index.line_of(text_range.start)
    end_line = index.line_of(text_range.end)
    return types.Range(
        start=types.Position(line=start_line - 1, character=index.utf16_column(text_range.start)),
        end=types.Position(line=end_line - 1, character=index.utf16_column(text_range.end)),
    )


def _from_lsp_range(index: text.LineIndex, lsp_range: types.Range) -> text.TextRange:
    last = index.line_count
    start_line = min(lsp_range.start.line + 1, last)
    end_line = min(lsp_range.end.line + 1, last)
    start = index.offset_from_utf16(start_line, lsp_range.start.character)
    end = index.offset_from_utf16(end_line, lsp_range.end.character)
    return text.TextRange(start, max(start, end))


def _to_lsp(index: text.LineIndex, diag: base.Diagnostic) -> types.Diagnostic:
    """Convert a corrigo Diagnostic to an LSP Diagnostic."""
    return types.Diagnostic(
        range=_to_lsp_range(index, diag.range),
        message=diag.message,
        severity=_SEVERITIES.get(diag.severity, types.DiagnosticSeverity.Hint),
        code=diag.rule_id,
        source="corrigo",
    )


def _analyze(source: str) -> list[base.Diagnostic]:
    """Analyze *source*, turning a parse failure into a single diagnostic."""
    try:
        return analyzer.analyze(source)
    except errors.ParseError as e:
        return [
            corrigo_analyzer.internal_diagnostic(corrigo_analyzer.PARSE_ERROR, e.message, e.range)
        ]


def _text_edits(index: text.LineIndex, hunks: tuple[patch.Hunk, ...]) -> list[types.TextEdit]:
    return [
        types.TextEdit(range=_to_lsp_range(index, hunk.original_range), new_text=hunk.new_text)
        for hunk in hunks
    ]


def _publish(ls: pygls_server.LanguageServer, uri: str) -> None:
    """Analyze a document and publish diagnostics to the client."""
    source = ls.workspace.get_text_document(uri).source
    index = text.LineIndex(source)
    ls.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(
            uri=uri,
            diagnostics=[_to_lsp(index, diag) for diag in _analyze(source)],
        )
    )


def code_actions(uri: str, source: str, requested: types.Range) -> list[types.CodeAction]:
    """Return one quick fix per fixable diagnostic in *requested*, plus fix-all.

    The fix-all action applies every safe fix at once, resolving overlaps
    the same way the CLI does.
    """
    index = text.LineIndex(source)
    window = _from_lsp_range(index, requested)
    diagnostics = _analyze(source)
    actions: list[types.CodeAction] = []
    for diag in diagnostics:
        if diag.fix is None:
            continue
        touches = diag.range.intersects(window) or window.contains(diag.range)
        if not (touches or diag.range.contains(window)):
            continue
        single = patch.apply(source, [diag], accept=lambda _kind: True)
        kind_note = "" if diag.fix.kind is base.FixKind.SAFE else " (unsafe)"
        actions.append(
            types.CodeAction(
                title=f"{diag.fix.description or diag.rule_id}{kind_note}",
                kind=types.CodeActionKind.QuickFix,
                diagnostics=[_to_lsp(index, diag)],
                edit=types.WorkspaceEdit(changes={uri: _text_edits(index, single.hunks)}),
                is_preferred=diag.fix.kind is base.FixKind.SAFE,
            )
        )
    fix_all = patch.apply(source, diagnostics, accept=patch.FixMode.SAFE.accepts)
    if fix_all.changed:
        actions.append(
            types.CodeAction(
                title="Apply all safe corrigo fixes",
                kind=FIX_ALL_KIND,
                edit=types.WorkspaceEdit(changes={uri: _text_edits(index, fix_all.hunks)}),
            )
        )
    return actions


@server.feature(types.TEXT_DOCUMENT_DID_OPEN)
def did_open(
    ls: pygls_server.LanguageServer,
    params: types.DidOpenTextDocumentParams,
) -> None:
    """Analyze a newly opened document."""
    _publish(ls, params.text_document.uri)


@server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
def did_change(
    ls: pygls_server.LanguageServer,
    params: types.DidChangeTextDocumentParams,
) -> None:
    """Re-analyze a document after every change."""
    _publish(ls, params.text_document.uri)


@server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
def did_close(
    ls: pygls_server.LanguageServer,
    params: types.DidCloseTextDocumentParams,
) -> None:
    """Clear diagnostics when a document is closed."""
    ls.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(uri=params.text_document.uri, diagnostics=[])
    )


@server.feature(
    types.TEXT_DOCUMENT_CODE_ACTION,
    types.CodeActionOptions(code_action_kinds=[types.CodeActionKind.QuickFix, FIX_ALL_KIND]),
)
def code_action(
    ls: pygls_server.LanguageServer,
    params: types.CodeActionParams,
) -> list[types.CodeAction]:
    """Offer quick fixes for the requested range and a fix-all action."""
    uri = params.text_document.uri
    source = ls.workspace.get_text_document(uri).source
    return code_actions(uri, source, params.range)


def start() -> None:
    """Start the LSP server over stdio."""
    server.start_io()
