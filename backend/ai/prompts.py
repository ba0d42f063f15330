"""Prompt builders for goal recommendations, meal ideas and chat.

Every builder renders the same context blocks (profile, current goal, recent
meals) from a per-language label table, so the Italian and English prompts
stay structurally identical.
"""
from typing import Iterable

from config import settings
from db.schemas import Meal, NutritionGoal, UserProfile
from utils.fitness import calculate_bmi

MAX_RECENT_MEALS = 5

LABELS = {
    "it": {
        "profile": "Profilo utente",
        "age": "Età",
        "gender": "Sesso",
        "weight": "Peso",
        "height": "Altezza",
        "activity": "Livello di attività",
        "bmi": "BMI",
        "not_specified": "Non specificato",
        "not_calculable": "Non calcolabile",
        "goal": "Obiettivo attuale",
        "no_goal": "Nessun obiettivo attuale impostato",
        "meals": "Pasti recenti",
        "no_meals": "Nessun pasto registrato di recente",
        "macros": "{calories} kcal, proteine {proteins} g, carboidrati {carbs} g, grassi {fats} g",
        "answer_in": "Rispondi in italiano.",
    },
    "en": {
        "profile": "User profile",
        "age": "Age",
        "gender": "Gender",
        "weight": "Weight",
        "height": "Height",
        "activity": "Activity level",
        "bmi": "BMI",
        "not_specified": "Not specified",
        "not_calculable": "Not calculable",
        "goal": "Current goal",
        "no_goal": "No current goal set",
        "meals": "Recent meals",
        "no_meals": "No recently recorded meals",
        "macros": "{calories} kcal, proteins {proteins} g, carbs {carbs} g, fats {fats} g",
        "answer_in": "Answer in English.",
    },
}

GOAL_APPROACHES = {
    "it": [
        (
            "MEDITERRANEO/BILANCIATO",
            "spiega perché l'approccio mediterraneo bilanciato è adatto a questo utente",
            "calorie giornaliere consigliate per questo approccio",
            "distribuzione dei macronutrienti (proteine, carboidrati, grassi) in grammi",
        ),
        (
            "PROTEICO/ENERGETICO",
            "spiega perché un approccio ad alto contenuto proteico è adatto a questo utente",
            "calorie giornaliere consigliate (leggermente superiori alla norma per favorire l'energia)",
            "distribuzione dei macronutrienti con PROTEINE ELEVATE (almeno il 25-30% delle calorie totali)",
        ),
        (
            "VEGETALE o LOW-CARB",
            "spiega perché questo approccio è adatto a questo utente",
            "calorie giornaliere consigliate (leggermente ridotte rispetto alla norma)",
            "distribuzione dei macronutrienti con CARBOIDRATI RIDOTTI e più grassi sani",
        ),
    ],
    "en": [
        (
            "MEDITERRANEAN/BALANCED",
            "explain why the balanced Mediterranean approach is suitable for this user",
            "recommended daily calories for this approach",
            "macronutrient distribution (proteins, carbs, fats) in grams",
        ),
        (
            "PROTEIN/ENERGY",
            "explain why a high-protein approach is suitable for this user",
            "recommended daily calories (higher than normal to promote energy)",
            "macronutrient distribution with HIGH PROTEIN (at least 25-30% of total calories)",
        ),
        (
            "PLANT-BASED or LOW-CARB",
            "explain why this approach is suitable for this user",
            "recommended daily calories (slightly reduced from normal)",
            "macronutrient distribution with REDUCED CARBS and increased healthy fats",
        ),
    ],
}

CHAT_SYSTEM_PROMPTS = {
    "goals": (
        "You are a nutritionist specializing in nutritional goals and metabolism. "
        "Answer only questions about health goals, weight goals, macronutrients, calories, metabolism, "
        "and strategies for achieving nutritional goals. If the user asks for information on other topics, "
        "gently redirect the conversation towards nutritional goals. Respond in a detailed but concise way."
    ),
    "meals": (
        "You are a food and cooking expert specializing in meals, food items, and recipes. "
        "Answer only questions about food, meals, recipes, nutritional values of foods, food preparation, "
        "dietary alternatives, and advice for specific meals. If the user asks for information on other topics, "
        "gently redirect the conversation towards food and meal topics. Respond in a detailed but concise way."
    ),
    "general": (
        "You are an expert nutritionist who answers questions about nutrition, diet, and health. "
        "You have access to the user's profile and nutritional data, which you should use to personalize "
        "your responses. Respond in a conversational but professional manner, providing accurate and "
        "comprehensive information. Base your answers on up-to-date scientific information. If you don't "
        "know the answer to a specific question, don't make up information and gently direct the user "
        "to a professional."
    ),
}

PERPLEXITY_MEALS_SYSTEM = (
    "Sei un esperto nutrizionista italiano specializzato in piani alimentari personalizzati. "
    "Rispondi sempre in italiano e con informazioni precise, basate sui dati forniti. "
    "Usa sempre il formato JSON richiesto."
)
PERPLEXITY_ADVICE_SYSTEM = (
    "Sei un esperto nutrizionista italiano specializzato in consulenza personalizzata. "
    "Rispondi sempre in italiano e con informazioni precise, basate sui dati forniti e ricerche "
    "scientifiche attuali."
)


def resolve_language(lang: str | None) -> str:
    candidate = (lang or settings.AI_DEFAULT_LANGUAGE or "it").strip().lower()[:2]
    return candidate if candidate in LABELS else "it"


def _num(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def profile_block(profile: UserProfile, lang: str) -> str:
    t = LABELS[lang]
    missing = t["not_specified"]
    bmi = calculate_bmi(profile.weight, profile.height)
    lines = [
        f"{t['profile']}:",
        f"- {t['age']}: {profile.age if profile.age is not None else missing}",
        f"- {t['gender']}: {profile.gender or missing}",
        f"- {t['weight']}: {_num(profile.weight) + ' kg' if profile.weight else missing}",
        f"- {t['height']}: {_num(profile.height) + ' cm' if profile.height else missing}",
        f"- {t['activity']}: {profile.activity_level or missing}",
        f"- {t['bmi']}: {bmi if bmi else t['not_calculable']}",
    ]
    return "\n".join(lines)


def goal_block(goal: NutritionGoal | None, lang: str) -> str:
    t = LABELS[lang]
    if goal is None:
        return f"{t['goal']}: {t['no_goal']}"
    macros = t["macros"].format(
        calories=goal.calories, proteins=goal.proteins, carbs=goal.carbs, fats=goal.fats
    )
    return f"{t['goal']}: {goal.name} ({macros})"


def meals_block(meals: Iterable[Meal] | None, lang: str) -> str:
    t = LABELS[lang]
    recent = list(meals or [])[:MAX_RECENT_MEALS]
    if not recent:
        return f"{t['meals']}: {t['no_meals']}"
    lines = [f"{t['meals']}:"]
    for meal in recent:
        macros = t["macros"].format(
            calories=meal.calories, proteins=meal.proteins, carbs=meal.carbs, fats=meal.fats
        )
        lines.append(f"- {meal.food} [{meal.meal_type}]: {macros}")
    return "\n".join(lines)


def user_context(
    profile: UserProfile,
    goal: NutritionGoal | None,
    meals: Iterable[Meal] | None,
    lang: str,
) -> str:
    return "\n\n".join([profile_block(profile, lang), goal_block(goal, lang), meals_block(meals, lang)])


def goal_recommendation_prompts(
    profile: UserProfile,
    goal: NutritionGoal | None,
    meals: Iterable[Meal] | None,
    lang: str | None = None,
    query_id: str = "",
) -> tuple[str, list[str]]:
    """System prompt plus one user prompt per approach (Mediterranean, protein, low-carb)."""
    lang = resolve_language(lang)
    t = LABELS[lang]
    context = user_context(profile, goal, meals, lang)
    if lang == "it":
        system = (
            "Sei un nutrizionista esperto che fornisce consigli personalizzati. Esamina il profilo "
            "dell'utente e proponi obiettivi nutrizionali adatti alle sue caratteristiche. " + t["answer_in"]
        )
        template = (
            "Crea UN SOLO obiettivo nutrizionale personalizzato con approccio {style} per questo utente:\n\n"
            "{context}\n\n"
            "Devi fornire:\n"
            "1. Un titolo breve e creativo\n"
            "2. Una breve descrizione: {why}\n"
            "3. {calories}\n"
            "4. {macros}\n\n"
            "ID RICHIESTA: {query_id}\n\n"
            "Rispondi SOLO con un oggetto JSON nel formato:\n"
            '{{"title": "...", "description": "...", "calories": numero, "proteins": grammi, '
            '"carbs": grammi, "fats": grammi}}'
        )
    else:
        system = (
            "You are an expert nutritionist providing personalized advice. Examine the user profile "
            "and propose nutritional goals suitable for their characteristics. " + t["answer_in"]
        )
        template = (
            "Create ONLY ONE personalized nutritional goal with a {style} approach for this user:\n\n"
            "{context}\n\n"
            "You must provide:\n"
            "1. A short, creative title\n"
            "2. A brief description: {why}\n"
            "3. {calories}\n"
            "4. {macros}\n\n"
            "QUERY ID: {query_id}\n\n"
            "Respond ONLY with a JSON object in the following format:\n"
            '{{"title": "...", "description": "...", "calories": number, "proteins": grams, '
            '"carbs": grams, "fats": grams}}'
        )
    prompts = [
        template.format(style=style, context=context, why=why, calories=calories, macros=macros, query_id=query_id)
        for style, why, calories, macros in GOAL_APPROACHES[lang]
    ]
    return system, prompts


def meal_suggestion_prompt(
    profile: UserProfile,
    goal: NutritionGoal | None,
    meal_type: str | None = None,
    preferences: list[str] | None = None,
    lang: str | None = None,
    query_id: str = "",
) -> tuple[str, str]:
    lang = resolve_language(lang)
    t = LABELS[lang]
    context = "\n\n".join([profile_block(profile, lang), goal_block(goal, lang)])
    prefs = ", ".join(p for p in (preferences or []) if p)
    if lang == "it":
        system = (
            "Sei un esperto di nutrizione che suggerisce pasti sani e gustosi. Esamina il profilo e "
            "l'obiettivo nutrizionale dell'utente, poi suggerisci pasti adatti. " + t["answer_in"]
        )
        lines = [
            f"Analizza queste informazioni sull'utente:\n\n{context}\n",
            "Genera 3 idee di pasto COMPLETAMENTE ORIGINALI che:",
            f"- Siano adatte per {meal_type}" if meal_type else "- Includano tipi diversi (breakfast, lunch, dinner, snack)",
            "- Rispettino i limiti calorici e i macronutrienti dell'obiettivo (se presente)",
            "- Tengano conto di età, peso, altezza e livello di attività",
        ]
        if prefs:
            lines.append(f"- Considerino le preferenze: {prefs}")
        lines += [
            f"\nID RICHIESTA: {query_id}\n",
            "Per ogni pasto indica nome, descrizione breve (ingredienti e benefici), tipo di pasto, calorie e macronutrienti.",
            'Rispondi con un JSON nel formato: {"suggestions": [{"name": "...", "description": "...", '
            '"mealType": "...", "calories": numero, "proteins": grammi, "carbs": grammi, "fats": grammi}]}',
            "Tutti i valori numerici devono essere realistici e arrotondati all'intero.",
        ]
    else:
        system = (
            "You are a nutrition expert who suggests healthy and delicious meals. Examine the user's "
            "profile and nutritional goal, then suggest suitable meals. " + t["answer_in"]
        )
        lines = [
            f"Analyze this user information:\n\n{context}\n",
            "Generate 3 COMPLETELY ORIGINAL meal ideas that:",
            f"- Are suitable for {meal_type}" if meal_type else "- Include different types (breakfast, lunch, dinner, snack)",
            "- Respect the caloric limits and macronutrients of the nutritional goal (if present)",
            "- Take into account age, weight, height and activity level of the user",
        ]
        if prefs:
            lines.append(f"- Consider the preferences: {prefs}")
        lines += [
            f"\nQUERY ID: {query_id}\n",
            "For each meal, provide a name, a brief description with main ingredients and benefits, the meal type, calories and macronutrients.",
            'Respond with a JSON in the format: {"suggestions": [{"name": "...", "description": "...", '
            '"mealType": "...", "calories": number, "proteins": grams, "carbs": grams, "fats": grams}]}',
            "Make sure all numerical values are reasonable and rounded to the nearest integer.",
        ]
    return system, "\n".join(lines)


def chat_prompt(
    query: str,
    profile: UserProfile,
    goal: NutritionGoal | None,
    meals: Iterable[Meal] | None,
    chat_type: str | None = None,
    lang: str | None = None,
) -> tuple[str, str]:
    lang = resolve_language(lang)
    t = LABELS[lang]
    system = CHAT_SYSTEM_PROMPTS.get(chat_type or "general", CHAT_SYSTEM_PROMPTS["general"]) + " " + t["answer_in"]
    context = user_context(profile, goal, meals, lang)
    if lang == "it":
        user = (
            f"Tieni conto di queste informazioni sull'utente:\n\n{context}\n\n"
            f"Domanda dell'utente: {query}\n\n"
            "Fornisci una risposta completa e personalizzata, tenendo conto del profilo e dei dati nutrizionali."
        )
    else:
        user = (
            f"Take into account this user information:\n\n{context}\n\n"
            f"User question: {query}\n\n"
            "Provide a complete and personalized answer, taking into account the user's profile and nutritional data."
        )
    return system, user


def _profile_sentence(profile: UserProfile) -> str:
    return (
        f"L'utente è {profile.gender or 'non specificato'}, ha {profile.age if profile.age is not None else '?'} anni, "
        f"pesa {_num(profile.weight) if profile.weight else '?'}kg, è alto {_num(profile.height) if profile.height else '?'}cm "
        f"e ha un livello di attività {profile.activity_level or 'non specificato'}."
    )


def perplexity_meal_prompt(
    profile: UserProfile,
    goal: NutritionGoal | None,
    meal_type: str | None = None,
    dietary_preferences: list[str] | None = None,
) -> tuple[str, str]:
    lines = [
        "In qualità di nutrizionista esperto di cucina italiana, fornisci suggerimenti personalizzati per pasti sani ed equilibrati.",
        "",
        _profile_sentence(profile),
    ]
    if goal is not None:
        lines.append(
            f"L'utente ha un obiettivo nutrizionale di {goal.calories} calorie, {goal.proteins}g di proteine, "
            f"{goal.carbs}g di carboidrati e {goal.fats}g di grassi al giorno."
        )
    lines.append(
        f"L'utente sta cercando suggerimenti per {meal_type}."
        if meal_type
        else "L'utente sta cercando suggerimenti per i pasti della giornata."
    )
    prefs = [p for p in (dietary_preferences or []) if p]
    if prefs:
        lines.append(f"Le preferenze dietetiche dell'utente includono: {', '.join(prefs)}.")
    lines += [
        "",
        "Fornisci 3 suggerimenti specifici di pasti con nome, breve descrizione (massimo 30 parole), "
        "valori nutrizionali stimati (calorie, proteine, carboidrati, grassi) e ingredienti principali.",
        "",
        'Rispondi in formato JSON con questo schema: {"meals": [{"name": "...", "description": "...", '
        '"calories": numero, "proteins": numero, "carbs": numero, "fats": numero, "ingredients": ["..."]}]}',
        "",
        "Fornisci valori nutrizionali realistici e precisi basati sugli ingredienti e sulla porzione.",
    ]
    return PERPLEXITY_MEALS_SYSTEM, "\n".join(lines)


def perplexity_advice_prompt(profile: UserProfile, query: str) -> tuple[str, str]:
    user = (
        "In qualità di nutrizionista esperto, fornisci consigli nutrizionali personalizzati per la seguente richiesta:\n\n"
        f'Richiesta dell\'utente: "{query}"\n\n'
        f"Dati profilo: {_profile_sentence(profile)}\n\n"
        "Fornisci una risposta dettagliata ma concisa, con consigli pratici e scientificamente validi.\n"
        "Se la richiesta è relativa a valori nutrizionali o calorie, includi numeri specifici e riferimenti.\n"
        "Includi sempre almeno un consiglio pratico che l'utente può implementare immediatamente.\n\n"
        "Rispondi in italiano usando un tono professionale ma accessibile."
    )
    return PERPLEXITY_ADVICE_SYSTEM, user
