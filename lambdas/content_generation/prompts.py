# lambdas/content_generation/prompts.py
import json
import re
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

PROMPTS_PATH = Path(__file__).parent / "default_prompts.yml"
FALLBACK_CONTENT_TYPE = "facebook_post"
HASHTAG_PATTERN = re.compile(r"#\w+")


def load_default_prompts(path: Path = PROMPTS_PATH) -> Dict[str, str]:
    with open(path, 'r') as f:
        return yaml.safe_load(f)


DEFAULT_PROMPTS = load_default_prompts()


def fill_template(prompt: str, variables: Dict[str, Any]) -> str:
    """Replaces every `{name}` placeholder whose name is in `variables`; others are left alone."""
    for key, value in variables.items():
        prompt = prompt.replace(f"{{{key}}}", str(value))
    return prompt


def build_prompt(campaign: dict, template: Optional[dict], custom_prompt: Optional[str],
                 variables: Dict[str, Any], content_type: str) -> str:
    """
    Chooses the prompt for a generation request.

    A custom prompt wins, then a stored template (with variables substituted),
    then the default prompt for the content type.
    """
    if custom_prompt:
        return custom_prompt

    if template and template.get('prompt'):
        return fill_template(template['prompt'], variables)

    default = DEFAULT_PROMPTS.get(content_type) or DEFAULT_PROMPTS[FALLBACK_CONTENT_TYPE]
    return fill_template(default, {
        'campaign_name': campaign.get('name', ''),
        'description': campaign.get('description', ''),
        'target_audience': json.dumps(campaign.get('targetAudience', {}), default=str),
        'landing_page_url': campaign.get('landingPageUrl', ''),
    })


def parse_generated_content(text: str, content_type: str) -> dict:
    """
    Splits model output into title, body and metadata.

    Only blog posts carry a title: the first non-empty line, minus any leading '#'.
    """
    lines = [line for line in text.split('\n') if line.strip()]

    title = ''
    body = text
    if content_type == 'blog_post' and lines:
        title = re.sub(r"^#+\s*", "", lines[0])
        body = '\n'.join(lines[1:])

    metadata = {
        'wordCount': len(text.split()),
        'hasImages': False,
        'hashtags': HASHTAG_PATTERN.findall(text),
        'tone': 'professional',
    }
    return {'title': title, 'body': body, 'metadata': metadata}
