from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from jira_api_client.services.jira_client import JiraClient

logger = logging.getLogger("jira_api_client.export")


# PUBLIC_INTERFACE
async def export_issue(client: JiraClient, key: str, out_dir: Path, include_xml: bool = True) -> List[Path]:
    """
    Save an issue to ``out_dir``: ``<KEY>.txt`` holds "Issue: <summary>" and,
    when ``include_xml`` is set, ``<KEY>_details.xml`` holds the XML view.

    Returns the written paths. Errors from JIRA propagate; files written
    before the failure are kept.
    """
    issue = await client.get_issue(key)
    out_dir.mkdir(parents=True, exist_ok=True)

    written: List[Path] = []
    summary_path = out_dir / f"{issue.key}.txt"
    summary_path.write_text(f"Issue: {issue.summary}", encoding="utf-8")
    written.append(summary_path)
    logger.info("issue_summary_saved", extra={"issue_key": issue.key, "path": str(summary_path)})

    if include_xml:
        xml = await client.get_issue_xml(issue.key)
        xml_path = out_dir / f"{issue.key}_details.xml"
        xml_path.write_text(xml, encoding="utf-8")
        written.append(xml_path)
        logger.info("issue_xml_saved", extra={"issue_key": issue.key, "path": str(xml_path)})

    return written
