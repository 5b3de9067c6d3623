from practicehub import fallback_options as fb


def test_choice_table_is_pinned():
    keywords = [rule.keywords for rule in fb.CHOICE_RULES]
    assert keywords == [
        ('session format',),
        ('sadness',),
        ('pessimism',),
        ('past failure',),
        ('loss of pleasure',),
        ('guilty feelings',),
        ('punishment feelings',),
        ('self-dislike',),
        ('self-criticalness',),
        ('suicidal thoughts',),
        ('crying',),
        ('agitation',),
        ('loss of interest in sex',),
        ('loss of interest',),
        ('indecisiveness',),
        ('worthlessness',),
        ('loss of energy',),
        ('changes in sleeping',),
        ('irritability',),
        ('changes in appetite',),
        ('concentration',),
        ('tiredness', 'fatigue'),
    ]
    assert all(len(rule.options) == 4 for rule in fb.CHOICE_RULES[1:])
    assert fb.CHOICE_DEFAULT == ('Yes', 'No')


def test_checkbox_table_is_pinned():
    assert [rule.keywords[0] for rule in fb.CHECKBOX_RULES] == [
        'psychological tools',
        'physical concerns',
        'emotional concerns',
        'social',
        'cognitive',
        'medical conditions',
        'trauma',
    ]
    assert fb.CHECKBOX_RULES[1].options == (
        'Headaches',
        'Sleep problems',
        'Fatigue',
        'Appetite changes',
        'Muscle tension',
        'Other physical symptoms',
    )
    assert fb.CHECKBOX_DEFAULT == ('Yes', 'No', 'Not applicable')


def test_match_is_case_insensitive_substring():
    assert fb.fallback_options('Preferred SESSION FORMAT?', 'multiple_choice') == [
        'In-Person',
        'Online',
        'Phone',
    ]
    assert fb.fallback_options('1. Sadness', 'multiple_choice')[0] == 'I do not feel sad.'


def test_specific_interest_rule_wins_over_general_one():
    sex = fb.fallback_options('21. Loss of Interest in Sex', 'multiple_choice')
    general = fb.fallback_options('12. Loss of Interest', 'multiple_choice')
    assert sex[0] == 'I have not noticed any recent change in my interest in sex.'
    assert general[0] == 'I have not lost interest in other people or activities.'


def test_either_keyword_matches_tiredness_rule():
    assert fb.fallback_options('Fatigue', 'multiple_choice') == fb.fallback_options(
        'Tiredness', 'multiple_choice'
    )


def test_defaults_when_nothing_matches():
    assert fb.fallback_options('Do you smoke?', 'multiple_choice') == ['Yes', 'No']
    assert fb.fallback_options(None, 'multiple_choice') == ['Yes', 'No']
    assert fb.fallback_options('Anything else?', 'checkbox') == ['Yes', 'No', 'Not applicable']


def test_returned_lists_do_not_alias_the_table():
    options = fb.fallback_options('Physical concerns', 'checkbox')
    options.append('mutated')
    assert 'mutated' not in fb.fallback_options('Physical concerns', 'checkbox')
