from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from treedoc.check import DocumentOutcome
from treedoc.scanner import Issue


class IssueDTO(BaseModel):
    line_number: int
    detail: str
    out_of_sync_paths: Optional[List[str]] = None

    @classmethod
    def from_issue(cls, issue: Issue) -> "IssueDTO":
        paths = list(issue.out_of_sync_paths) if issue.out_of_sync_paths is not None else None
        return cls(line_number=issue.line_number, detail=issue.detail, out_of_sync_paths=paths)


class DocumentReportDTO(BaseModel):
    path: str
    mode: str
    parser_issues: List[IssueDTO] = []
    sync_issues: List[IssueDTO] = []
    selector_issues: List[IssueDTO] = []
    unused_annotation_issues: List[IssueDTO] = []
    rewritten: bool = False

    @classmethod
    def from_outcome(
        cls, path: str, outcome: DocumentOutcome, *, rewritten: bool = False
    ) -> "DocumentReportDTO":
        if outcome.report is not None:
            report = outcome.report
            return cls(
                path=path,
                mode=outcome.mode.value,
                parser_issues=[IssueDTO.from_issue(i) for i in report.parser_issues],
                sync_issues=[IssueDTO.from_issue(i) for i in report.sync_issues],
                selector_issues=[IssueDTO.from_issue(i) for i in report.selector_issues],
                unused_annotation_issues=[
                    IssueDTO.from_issue(i) for i in report.unused_annotation_issues
                ],
            )
        issues = outcome.fix.issues if outcome.fix is not None else []
        return cls(
            path=path,
            mode=outcome.mode.value,
            parser_issues=[IssueDTO.from_issue(i) for i in issues],
            rewritten=rewritten,
        )


class ReportDTO(BaseModel):
    documents: List[DocumentReportDTO]
    issue_count: int
