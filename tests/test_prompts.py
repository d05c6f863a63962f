# tests/test_prompts.py
import pytest

from lambdas.content_generation.prompts import (
    DEFAULT_PROMPTS,
    build_prompt,
    fill_template,
    parse_generated_content,
)

CAMPAIGN = {
    'name': 'Scholarship Drive',
    'description': 'Up to 75% off for repeat candidates',
    'landingPageUrl': 'https://campaigns.prodenthub.com.au/scholarship/',
    'targetAudience': {'examStatus': ['Preparing']},
}


def test_default_prompts_cover_every_content_type():
    assert set(DEFAULT_PROMPTS) == {'facebook_post', 'blog_post', 'ad_copy', 'email'}


@pytest.mark.parametrize('content_type', ['facebook_post', 'blog_post', 'ad_copy', 'email'])
def test_default_prompt_is_filled_from_campaign(content_type):
    prompt = build_prompt(CAMPAIGN, None, None, {}, content_type)

    assert 'Scholarship Drive' in prompt
    assert 'Up to 75% off' in prompt
    assert '{campaign_name}' not in prompt
    assert '{description}' not in prompt


def test_unknown_type_falls_back_to_facebook_post():
    assert build_prompt(CAMPAIGN, None, None, {}, 'tiktok') == build_prompt(CAMPAIGN, None, None, {}, 'facebook_post')


def test_custom_prompt_wins_over_template():
    template = {'prompt': 'Template {x}'}
    assert build_prompt(CAMPAIGN, template, 'Custom', {'x': 1}, 'email') == 'Custom'
    assert build_prompt(CAMPAIGN, template, None, {'x': 1}, 'email') == 'Template 1'


def test_fill_template_leaves_unknown_placeholders():
    assert fill_template('{a} and {b}', {'a': 'one'}) == 'one and {b}'


def test_parse_facebook_post_keeps_full_text():
    parsed = parse_generated_content('Study smarter. #ADC #Exam\nJoin today.', 'facebook_post')

    assert parsed['title'] == ''
    assert parsed['body'] == 'Study smarter. #ADC #Exam\nJoin today.'
    assert parsed['metadata'] == {
        'wordCount': 6,
        'hasImages': False,
        'hashtags': ['#ADC', '#Exam'],
        'tone': 'professional',
    }


def test_parse_blog_post_strips_heading_marker():
    parsed = parse_generated_content('\n## Passing the ADC\nIntro paragraph', 'blog_post')
    assert parsed['title'] == 'Passing the ADC'
    assert parsed['body'] == 'Intro paragraph'
