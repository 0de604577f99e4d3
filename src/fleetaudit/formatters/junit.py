"""JUnit XML formatter for CI/CD integration.

One testcase per expected setting; Differ and Missing verdicts are failures.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from xml.dom import minidom
from xml.etree import ElementTree as ET

from ..core.report import ReportTables


def export_junit_results(
    tables: ReportTables,
    output_path: Path,
    fail_on: list[str] | None = None,
    suite_name: str = "fleetaudit",
    duration: float = 0,
) -> dict:
    """Export comparison rows as JUnit XML.

    Args:
        tables: Labelled comparator output.
        output_path: Path to write the XML file.
        fail_on: Verdicts to mark as failures. Default: Differ, Missing.
        suite_name: Name for the testsuites element.
        duration: Total duration in seconds.

    Returns:
        Dict with: path, total_tests, failures, passed.
    """
    if fail_on is None:
        fail_on = ["Differ", "Missing"]
    fail_set = set(fail_on)

    testsuites = ET.Element("testsuites")
    testsuites.set("name", suite_name)
    testsuites.set("timestamp", datetime.now().strftime("%Y-%m-%dT%H:%M:%S"))

    total_tests = 0
    total_failures = 0

    # One testsuite per baseline owner, in first-appearance order
    by_owner: dict[str, list] = {}
    for row in tables.comparison:
        by_owner.setdefault(row.baseline_owner, []).append(row)

    for owner, rows in by_owner.items():
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", owner)
        testsuite.set("tests", str(len(rows)))

        suite_failures = 0

        for row in rows:
            total_tests += 1

            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", row.composite_display_name)
            testcase.set("classname", owner)

            if row.verdict in fail_set:
                total_failures += 1
                suite_failures += 1

                failure = ET.SubElement(testcase, "failure")
                failure.set("message", f"[{row.verdict}] {row.composite_display_name}")
                failure.set("type", row.verdict.lower())

                text_parts = [
                    f"Setting: {row.composite_key}",
                    f"Expected: {row.expected_value}",
                ]
                if row.configured_owners:
                    pairs = zip(row.configured_owners, row.actual_values)
                    text_parts.append("Actual:")
                    text_parts.extend(f"  {owner_name}: {value}" for owner_name, value in pairs)
                else:
                    text_parts.append("Actual: not configured by any selected policy")
                if row.description:
                    text_parts.append(f"\nDescription:\n{row.description}")

                failure.text = "\n".join(text_parts)

        testsuite.set("failures", str(suite_failures))
        testsuite.set("errors", "0")
        testsuite.set("skipped", "0")

    testsuites.set("tests", str(total_tests))
    testsuites.set("failures", str(total_failures))
    testsuites.set("errors", "0")
    if duration > 0:
        testsuites.set("time", str(round(duration, 2)))

    output_path.parent.mkdir(parents=True, exist_ok=True)

    # Pretty-print XML
    rough = ET.tostring(testsuites, encoding="unicode")
    dom = minidom.parseString(rough)
    xml_str = dom.toprettyxml(indent="  ", encoding="UTF-8")
    output_path.write_bytes(xml_str)

    return {
        "path": str(output_path),
        "total_tests": total_tests,
        "failures": total_failures,
        "passed": total_tests - total_failures,
    }
