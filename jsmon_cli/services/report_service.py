"""
Reshaping of API responses into the JSON documents printed by report commands.

Everything here is a pure function of the decoded response so the output
format can be tested without a network.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

GRAPHQL_FIELDS = frozenset({"gqlqueries", "gqlmutaions", "gqlmutations", "gqlfragments"})
DOMAIN_STATUS_FIELDS = frozenset({"activedomains", "inactivedomains"})
AWS_ASSET_FIELDS = frozenset({"awsassets", "allawsassets"})

FILTER_FIELDS = (
    "jsurls",
    "apipaths",
    "urls",
    "emails",
    "gqlqueries",
    "gqlmutaions",
    "sqlfragments",
    "param",
)

SECRET_KEYS = ("moduleName", "matchedWord", "severity", "createdAt")

# (section title, [(label, response key), ...]) in display order
COUNT_SECTIONS: List[Tuple[str, List[Tuple[str, str]]]] = [
    (
        "General Counts",
        [
            ("Total Documents", "totalDocuments"),
            ("Total Domains", "totalDomains"),
            ("Total Emails", "totalEmails"),
            ("Total IP Addresses", "totalIpAddresses"),
            ("Total IPv4 Addresses", "totalIpv4Addresses"),
            ("Total JS URLs", "totalJsUrls"),
            ("Total URLs", "totalUrls"),
        ],
    ),
    (
        "Security & Authentication",
        [
            ("Total API Paths", "totalApiPaths"),
            ("Total Extracted Parameters", "totalExtractedParameters"),
            ("Total JWT Tokens", "totalJwtTokens"),
        ],
    ),
    (
        "Dependencies & Modules",
        [
            ("Total GUIDs", "totalGuids"),
            ("Total Node Modules", "totalNodeModules"),
            ("Total Valid Node Modules", "totalValidNodeModules"),
        ],
    ),
    (
        "GraphQL",
        [
            ("Total GQL Fragments", "totalGqlFragments"),
            ("Total GQL Mutations", "totalGqlMutations"),
            ("Total GQL Queries", "totalGqlQueries"),
        ],
    ),
    (
        "AWS Assets",
        [
            ("Total Amplify Domains", "totalAmplifyDomains"),
            ("Total API Gateway Endpoints", "totalApiGatewayEndpoints"),
            ("Total AppSync Endpoints", "totalAppSyncEndpoints"),
            ("Total AWS Assets", "totalAwsAssets"),
            ("Total CloudFormation Endpoints", "totalCloudFormationEndpoints"),
            ("Total CloudFront Domains", "totalCloudFrontDomains"),
            ("Total CloudWatch Endpoints", "totalCloudWatchEndpoints"),
            ("Total Cognito Auth Domains", "totalCognitoAuthDomains"),
            ("Total Cognito Endpoints", "totalCognitoEndpoints"),
            ("Total Cognito Identity Pool IDs", "totalCognitoIdentityPoolIDs"),
            ("Total Cognito User Pool IDs", "totalCognitoUserPoolIDs"),
            ("Total Container Endpoints", "totalContainerEndpoints"),
            ("Total EC2 Instances", "totalEc2Instances"),
            ("Total ELB Endpoints", "totalElbEndpoints"),
            ("Total IoT Endpoints", "totalIotEndpoints"),
            ("Total Kinesis Endpoints", "totalKinesisEndpoints"),
            ("Total Lambda Functions", "totalLambdaFunctions"),
            ("Total OpenSearch Domains", "totalOpenSearchDomains"),
            ("Total Other AWS Endpoints", "totalOtherAWSEndpoints"),
            ("Total RDS Instances", "totalRdsInstances"),
            ("Total S3 Buckets", "totalS3Buckets"),
            ("Total S3 Domains", "totalS3Domains"),
            ("Total S3 Domains (Invalid)", "totalS3DomainsInvalid"),
            ("Total STS Endpoints", "totalStsEndpoints"),
            ("Total Transfer Endpoints", "totalTransferEndpoints"),
            ("Total Work Services", "totalWorkServices"),
        ],
    ),
    (
        "URLs & Links",
        [
            ("Total Extracted Domains Status", "totalExtractedDomainsStatus"),
            ("Total File Extension URLs", "totalFileExtensionUrls"),
            ("Total Filtered Port URLs", "totalFilteredPortUrls"),
            ("Total Localhost URLs", "totalLocalhostUrls"),
            ("Total Query Params URLs", "totalQueryParamsUrls"),
            ("Total Social Media URLs", "totalSocialMediaUrls"),
        ],
    ),
    (
        "Execution & Timing",
        [
            ("Total Exec Data", "totalExecData"),
            ("Total setInterval Calls", "totalSetIntervalCalls"),
            ("Total setTimeout Calls", "totalSetTimeoutCalls"),
        ],
    ),
    (
        "Vulnerabilities",
        [
            ("Total Client-Side SQLi", "totalClientSideSQLi"),
            (
                "Total DOM-Based Ajax Header Manipulation",
                "totalDomBasedAjaxHeaderManipulation",
            ),
            ("Total DOM-Based Cookie Manipulation", "totalDomBasedCookieManipulation"),
            ("Total DOM-Based DoS", "totalDomBasedDOS"),
            (
                "Total DOM-Based File Path Manipulation",
                "totalDomBasedFilePathManipulation",
            ),
            (
                "Total DOM-Based JavaScript Injection",
                "totalDomBasedJavaScriptInjection",
            ),
            ("Total DOM-Based Link Manipulation", "totalDomBasedLinkManipulation"),
            ("Total DOM-Based Open Redirection", "totalDomBasedOpenRedirection"),
            ("Total DOM XSS Potential", "totalDomXssPotentialVulnerabilities"),
            ("Total Vulnerabilities", "totalVulnerabilities"),
        ],
    ),
]


def _records(response: Any) -> List[Dict[str, Any]]:
    """Return the dict entries of ``response["data"]``."""
    if not isinstance(response, dict):
        return []
    data = response.get("data")
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


def _unescape_newlines(value: str) -> str:
    return value.replace("\\n", "\n")


def scan_assets(response: Any) -> List[str]:
    """Non-empty ``asset`` names from a fetchScans response"""
    data = response.get("data") if isinstance(response, dict) else None
    scans = data.get("scans") if isinstance(data, dict) else None
    if not isinstance(scans, list):
        return []
    return [
        scan["asset"]
        for scan in scans
        if isinstance(scan, dict) and isinstance(scan.get("asset"), str) and scan["asset"]
    ]


def intelligence_values(response: Any) -> List[str]:
    """Non-empty string ``value`` entries from an intelligence response"""
    return [
        item["value"]
        for item in _records(response)
        if isinstance(item.get("value"), str) and item["value"]
    ]


def _param_entry(value: Dict[str, Any]) -> Dict[str, Any]:
    url = value.get("url")
    params = value.get("parameters")
    entry: Dict[str, Any] = {"url": url if isinstance(url, str) else ""}
    entry["parameters"] = (
        [p for p in params if isinstance(p, dict)] if isinstance(params, list) else None
    )
    return entry


def _domain_status_entry(value: Dict[str, Any]) -> Dict[str, str]:
    expiry = value.get("expiryDate", "")
    if expiry is None:
        expiry = "NULL"
    elif not isinstance(expiry, str):
        expiry = ""

    def text(key: str) -> str:
        item = value.get(key)
        return item if isinstance(item, str) else ""

    return {
        "domainName": text("domainName"),
        "status": text("status"),
        "expiryDate": expiry,
    }


def shape_recon(field: str, response: Any) -> List[Any]:
    """
    Reshape an intelligence response for the ``recon`` command.

    - ``param``: ``[{"url", "parameters"}]``
    - ``activedomains`` / ``inactivedomains``: ``[{"domainName", "status",
      "expiryDate"}]`` with a null expiry shown as ``"NULL"``
    - ``awsassets`` / ``allawsassets``: the asset objects; bare strings are
      wrapped as ``{"value": ...}``
    - anything else: the non-empty string values, with literal ``\\n`` in
      GraphQL documents turned into real newlines
    """
    key = field.lower()
    values = [
        item["value"] for item in _records(response) if item.get("value") is not None
    ]

    if key == "param":
        return [_param_entry(v) for v in values if isinstance(v, dict)]

    if key in DOMAIN_STATUS_FIELDS:
        return [_domain_status_entry(v) for v in values if isinstance(v, dict)]

    if key in AWS_ASSET_FIELDS:
        assets: List[Any] = []
        for value in values:
            if isinstance(value, dict):
                assets.append(value)
            elif isinstance(value, str) and value:
                assets.append({"value": value})
        return assets

    strings = [v for v in values if isinstance(v, str) and v]
    if key in GRAPHQL_FIELDS:
        strings = [_unescape_newlines(v) for v in strings]
    return strings


def shape_filter(field: str, response: Any) -> List[Any]:
    """Reshape an intelligence search response for the ``filter`` command."""
    key = field.lower()
    output: List[Any] = []

    for item in _records(response):
        value = item.get("value", "")
        if key == "param":
            if isinstance(value, dict):
                output.append(_param_entry(value))
                continue
            if isinstance(value, str):
                decoded = _try_json_object(value)
                if decoded is not None:
                    output.append(_param_entry(decoded))
                    continue
            output.append(value)
        elif key in GRAPHQL_FIELDS and isinstance(value, str):
            output.append(_unescape_newlines(value))
        else:
            output.append(value)

    return output


def _try_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        decoded = json.loads(text)
    except ValueError:
        return None
    return decoded if isinstance(decoded, dict) else None


def shape_secrets(response: Any) -> Dict[str, Any]:
    """Keep the user-facing secret fields and the pagination block."""
    secrets = []
    for item in _records(response):
        secrets.append({key: item.get(key, "") for key in SECRET_KEYS})

    pagination = response.get("pagination") if isinstance(response, dict) else None
    return {"data": secrets, "pagination": pagination or {}}


def _strip_resource_ids(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key, value in data.items():
        if key == "resourceId":
            continue

        if key == "urls" and isinstance(value, list):
            cleaned[key] = [
                {
                    "url": entry.get("url") if isinstance(entry.get("url"), str) else "",
                    "createdAt": (
                        entry.get("createdAt")
                        if isinstance(entry.get("createdAt"), str)
                        else ""
                    ),
                }
                for entry in value
                if isinstance(entry, dict)
            ]
        elif isinstance(value, dict):
            cleaned[key] = _strip_resource_ids(value)
        elif isinstance(value, list):
            cleaned[key] = [
                _strip_resource_ids(entry) if isinstance(entry, dict) else entry
                for entry in value
            ]
        else:
            cleaned[key] = value
    return cleaned


def shape_reverse_search(results: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop internal ``resourceId`` keys at any depth and trim URL records."""
    return [_strip_resource_ids(item) for item in results]


def unescape_search_value(value: str) -> str:
    """Turn literal ``\\n``, ``\\t`` and ``\\r`` typed on a shell into control characters."""
    return value.replace("\\n", "\n").replace("\\t", "\t").replace("\\r", "\r")


def parse_field_value(expression: str) -> Tuple[str, str]:
    """Split ``"field=value"``; the value may itself contain ``=``.

    Raises:
        ValueError: If there is no ``=`` or either side is empty
    """
    field, sep, value = expression.partition("=")
    field = field.strip()
    value = value.strip()
    if not sep or not field or not value:
        raise ValueError(f"Expected 'field=value', got '{expression}'")
    return field, value


def count_sections(analysis: Dict[str, Any]) -> List[Tuple[str, List[Tuple[str, int]]]]:
    """
    Group a count analysis into titled sections.

    Within a section the counts are sorted highest first; ties keep the
    display order. Missing or non-numeric counts are shown as 0.
    """
    sections = []
    for title, rows in COUNT_SECTIONS:
        counts = []
        for label, key in rows:
            value = analysis.get(key, 0)
            counts.append((label, value if isinstance(value, int) else 0))
        counts.sort(key=lambda row: row[1], reverse=True)
        sections.append((title, counts))
    return sections


def workspace_rows(workspaces: List[Dict[str, Any]], max_width: int = 30) -> List[str]:
    """Format workspaces as aligned ``name (ID: ...) - Shared Workspace: ...`` lines."""
    if not workspaces:
        return []

    width = min(max(len(str(w.get("name", ""))) for w in workspaces), max_width)
    rows = []
    for workspace in workspaces:
        shared = "Yes" if workspace.get("isShared") else "No"
        rows.append(
            f"  {str(workspace.get('name', '')):<{width}}  "
            f"(ID: {workspace.get('wkspId', '')})  -  Shared Workspace: {shared}"
        )
    return rows
