"""Attack signatures checked by the threat detector.

All expressions avoid nested quantifiers so matching stays linear in the
fragment length. The catalogue is built once at import and never changes.
"""

import re

from shield.app.services.threat_detector.models import SecurityPattern, Severity

_FLAGS = re.IGNORECASE

SQL_INJECTION = SecurityPattern(
    name="sql_injection",
    reason="SQL injection pattern detected",
    severity=Severity.HIGH,
    regex=re.compile(
        r"'\s*(?:;|--)"                                              # quote closing a statement
        r"|'\s*(?:or|and)\s+['\"]?\w+['\"]?\s*=\s*['\"]?\w"          # ' OR '1'='1
        r"|\bunion\s+(?:all\s+)?select\b"
        r"|\b(?:drop|truncate|alter)\s+(?:table|database|schema)\b"
        r"|;\s*(?:delete\s+from|insert\s+into|shutdown\b|exec(?:ute)?\b)"
        r"|\bupdate\s+\w+\s+set\s+\w+\s*="
        r"|\bxp_cmdshell\b"
        r"|\b(?:sleep|benchmark|pg_sleep)\s*\(\s*\d",
        _FLAGS,
    ),
)

XSS = SecurityPattern(
    name="xss",
    reason="XSS pattern detected",
    severity=Severity.HIGH,
    regex=re.compile(
        r"<\s*/?\s*script\b"
        r"|<\s*(?:iframe|object|embed)\b"
        r"|\bon(?:error|load|click|dblclick|mouse\w+|focus|blur|change|submit|key\w+|input|animationstart|toggle)\s*="
        r"|\b(?:java|vb)script\s*:"
        r"|data\s*:\s*text/html",
        _FLAGS,
    ),
)

PATH_TRAVERSAL = SecurityPattern(
    name="path_traversal",
    reason="Path traversal pattern detected",
    severity=Severity.HIGH,
    regex=re.compile(
        r"(?:\.\.|%2e%2e|\.%2e|%2e\.)(?:/|\\|%2f|%5c)",
        _FLAGS,
    ),
)

_SHELL_COMMANDS = (
    "rm|cat|ls|wget|curl|nc|ncat|netcat|bash|sh|zsh|chmod|chown|python[23]?|perl|php|ruby"
    "|whoami|id|uname|ping|nslookup|powershell|cmd|echo|kill|sudo|mkfifo|telnet|env"
)

# Option flag, path, home, variable, quoted string or IPv4 address
_SHELL_ARGUMENT = r"\s+(?:-\w|\.{0,2}/\w|~|\$[a-z_{(]|['\"]|\d{1,3}(?:\.\d{1,3}){3})"

# Reconnaissance commands, usually run without arguments
_RECON_COMMANDS = "whoami|uname|ifconfig|netstat"

COMMAND_INJECTION = SecurityPattern(
    name="command_injection",
    reason="Command injection pattern detected",
    severity=Severity.HIGH,
    regex=re.compile(
        # "Java | Python" or "dogs; cat people" carry no shell argument
        r"(?:;|&&|\|\|?|`|\$\()\s*(?:" + _SHELL_COMMANDS + r")\b" + _SHELL_ARGUMENT
        + r"|(?:;|&&|\|\|?)\s*(?:" + _RECON_COMMANDS + r")\b"
        r"|(?:`|\$\()\s*(?:" + _RECON_COMMANDS + r"|id|hostname)\s*[`)]",
        _FLAGS,
    ),
)

SUSPICIOUS_USER_AGENT = SecurityPattern(
    name="suspicious_user_agent",
    reason="Suspicious user agent",
    severity=Severity.MEDIUM,
    regex=re.compile(
        r"sqlmap|nikto|nmap|masscan|acunetix|nessus|openvas|w3af|dirbuster|gobuster"
        r"|wpscan|havij|hydra|nuclei|zgrab|netsparker|appscan|wfuzz|ffuf|joomscan"
        r"|arachni|skipfish|zaproxy|metasploit|burpcollaborator",
        _FLAGS,
    ),
)

# Checked in order against body leaves and the URL
SECURITY_PATTERNS: tuple[SecurityPattern, ...] = (
    SQL_INJECTION,
    XSS,
    PATH_TRAVERSAL,
    COMMAND_INJECTION,
)
