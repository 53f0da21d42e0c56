"""Default English placement assessment (15 multiple-choice questions, A1 to C2)."""
from __future__ import annotations

from typing import Any, Dict, List


def _question(qid: int, question: str, category: str, difficulty: str,
              options: List[str], correct: str, explanation: str) -> Dict[str, Any]:
    return {
        'id': qid,
        'question': question,
        'type': 'multiple_choice',
        'category': category,
        'difficulty': difficulty,
        'options': [{'text': text, 'isCorrect': text == correct} for text in options],
        'explanation': explanation,
        'points': 1,
    }


DEFAULT_ASSESSMENT: Dict[str, Any] = {
    'title': 'English Level Assessment',
    'description': 'Comprehensive assessment to determine your English proficiency level',
    'version': '1.0',
    'questions': [
        # A1
        _question(1, 'Choose the correct form: "I ___ from Spain."', 'grammar', 'A1',
                  ['am', 'is', 'are', 'be'], 'am',
                  'Use "am" with "I" in the present tense of "to be".'),
        _question(2, 'What is the plural of "child"?', 'vocabulary', 'A1',
                  ['childs', 'children', 'childes', 'child'], 'children',
                  '"Children" is the irregular plural form of "child".'),
        _question(3, 'Which sentence is correct?', 'structure', 'A1',
                  ['She have a dog.', 'She has a dog.', 'She having a dog.', 'She had have a dog.'],
                  'She has a dog.',
                  'Use "has" with third person singular subjects in present tense.'),
        # A2
        _question(4, 'Choose the correct past tense: "Yesterday I ___ to the store."', 'grammar', 'A2',
                  ['go', 'goes', 'went', 'going'], 'went',
                  '"Went" is the past tense of "go".'),
        _question(5, 'Which word means "very big"?', 'vocabulary', 'A2',
                  ['tiny', 'huge', 'small', 'narrow'], 'huge',
                  '"Huge" means extremely large or big.'),
        _question(6, 'Choose the correct sentence structure:', 'structure', 'A2',
                  ['Beautiful the girl is.', 'The girl beautiful is.', 'The girl is beautiful.',
                   'Is beautiful the girl.'],
                  'The girl is beautiful.',
                  'English follows Subject + Verb + Object/Complement order.'),
        # B1
        _question(7, 'If I ___ rich, I would buy a yacht.', 'grammar', 'B1',
                  ['am', 'was', 'were', 'will be'], 'were',
                  'Use "were" in hypothetical conditional sentences (second conditional).'),
        _question(8, 'Which word is closest in meaning to "persevere"?', 'vocabulary', 'B1',
                  ['give up', 'continue trying', 'start over', 'avoid'], 'continue trying',
                  '"Persevere" means to continue despite difficulties.'),
        _question(9, 'Read: "Although it was raining, we decided to go for a walk." The word "although" shows:',
                  'comprehension', 'B1',
                  ['cause and effect', 'contrast', 'time sequence', 'comparison'], 'contrast',
                  '"Although" introduces a contrasting clause.'),
        # B2
        _question(10, 'By the time she arrives, we ___ the project.', 'grammar', 'B2',
                  ['will finish', 'will have finished', 'finish', 'are finishing'], 'will have finished',
                  'Future perfect tense shows an action completed before another future action.'),
        _question(11, 'Which word best fits: "The CEO\'s decision was ___; it affected the entire company."',
                  'vocabulary', 'B2',
                  ['insignificant', 'momentous', 'trivial', 'routine'], 'momentous',
                  '"Momentous" means having great importance or significance.'),
        _question(12, 'In academic writing, which structure is most appropriate for presenting opposing views?',
                  'structure', 'B2',
                  ['I think... but others think...', 'While some argue..., others contend...',
                   'Maybe... or maybe not...', 'People say... but I say...'],
                  'While some argue..., others contend...',
                  'Academic writing uses formal transitions like "while" and "contend".'),
        # C1
        _question(13, 'Choose the most sophisticated way to express: "The situation is getting worse."',
                  'vocabulary', 'C1',
                  ['Things are bad and getting badder.', 'The situation is deteriorating.',
                   'Everything is going down.', 'Stuff is getting real bad.'],
                  'The situation is deteriorating.',
                  '"Deteriorating" is a more sophisticated and precise term.'),
        _question(14, 'Identify the grammatical function of "having been warned" in: '
                      '"Having been warned about the risks, she proceeded with caution."',
                  'grammar', 'C1',
                  ['present participle', 'past participle', 'perfect participle (passive)', 'gerund'],
                  'perfect participle (passive)',
                  '"Having been warned" is a perfect participle in passive voice.'),
        # C2
        _question(15, 'Which sentence demonstrates the most nuanced understanding of formal register?',
                  'comprehension', 'C2',
                  ['We should probably think about maybe changing this policy sometime.',
                   'It is imperative that we undertake a comprehensive review of the existing policy '
                   'framework with a view to implementing substantive reforms.',
                   "The policy needs to be changed right now because it's not working.",
                   'I think we need to fix the policy because there are problems.'],
                  'It is imperative that we undertake a comprehensive review of the existing policy '
                  'framework with a view to implementing substantive reforms.',
                  'Sophisticated vocabulary and complex structure suit formal contexts.'),
    ],
    'scoring': {
        'totalPoints': 15,
        'levelThresholds': {
            'A1': {'min': 0, 'max': 3},
            'A2': {'min': 4, 'max': 6},
            'B1': {'min': 7, 'max': 9},
            'B2': {'min': 10, 'max': 12},
            'C1': {'min': 13, 'max': 14},
            'C2': {'min': 15, 'max': 15},
        },
    },
}
