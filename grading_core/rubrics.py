RUBRICS = {
    "writing_task1": {"version":"v1","criteria":[
        {"id":"task_achievement","weight":0.25,"desc":"Summarises the key features and makes comparisons"},
        {"id":"coherence","weight":0.25,"desc":"Information is logically organised with clear progression"},
        {"id":"lexical","weight":0.25,"desc":"Range and accuracy of vocabulary"},
        {"id":"grammar","weight":0.25,"desc":"Range and accuracy of grammatical structures"}
    ]},
    "writing_task2": {"version":"v1","criteria":[
        {"id":"task_achievement","weight":0.25,"desc":"Addresses all parts of the prompt with a clear position"},
        {"id":"coherence","weight":0.25,"desc":"Paragraphing and cohesive devices support the argument"},
        {"id":"lexical","weight":0.25,"desc":"Range and accuracy of vocabulary"},
        {"id":"grammar","weight":0.25,"desc":"Range and accuracy of grammatical structures"}
    ]}
}

# heuristic writing criteria are derived from the averaged score with these factors
WRITING_CRITERIA_FACTORS = {"task_achievement": 1.0, "lexical": 0.8, "grammar": 0.85}


def rubric_for(essay_type: str) -> dict:
    return RUBRICS.get(f"writing_{essay_type}", RUBRICS["writing_task2"])
