"""Report encoders."""

from xcsift.output.github_actions import format_github_actions, summary_line
from xcsift.output.json_output import result_to_dict, to_json

__all__ = ["format_github_actions", "result_to_dict", "summary_line", "to_json"]
