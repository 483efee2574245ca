"""
Categorical Variables for the Task Recommender

Contains standardised lists of categorical values used by the feature encoder,
the strategy arms and the API layer.
"""

# Task categories that get a one-hot slot in the context vector (order matters)
TASK_CATEGORIES = ['Work', 'Wellbeing', 'Personal', 'Hobbies']

# Energy requirement of a task
ENERGY_LEVELS = ['Low', 'Medium', 'High']

# Task lifecycle states
TASK_STATUSES = ['active', 'completed', 'archived']

# Kinds of vitals log entries; only 'mood' carries an energy reading
VITAL_TYPES = ['mood', 'focus', 'journal', 'breathe']

# Kinds of suggestion the engine can emit
SUGGESTION_TYPES = ['task', 'wellbeing']

# Category mappings for easy access
CATEGORY_MAPPINGS = {
    'task_category': TASK_CATEGORIES,
    'energy_level': ENERGY_LEVELS,
    'task_status': TASK_STATUSES,
    'vital_type': VITAL_TYPES,
    'suggestion_type': SUGGESTION_TYPES,
}

# Default values used when a payload omits a field
DEFAULT_CATEGORICAL_VALUES = {
    'energy_level': 'Medium',
    'task_status': 'active',
    'vital_type': 'mood',
    'suggestion_type': 'task',
}


def get_categories(category_name: str):
    """
    Get category list by name.

    Args:
        category_name: Name of the category

    Returns:
        List of category values

    Raises:
        KeyError: If category name not found
    """
    if category_name not in CATEGORY_MAPPINGS:
        raise KeyError(f"Category '{category_name}' not found. Available categories: {list(CATEGORY_MAPPINGS.keys())}")

    return CATEGORY_MAPPINGS[category_name]


def get_default_value(category_name: str):
    """
    Get default value for a category.

    Raises:
        KeyError: If the category has no default
    """
    if category_name not in DEFAULT_CATEGORICAL_VALUES:
        raise KeyError(f"Default value for category '{category_name}' not found.")

    return DEFAULT_CATEGORICAL_VALUES[category_name]


def is_valid_category_value(category_name: str, value: str) -> bool:
    """Check if a value is valid for a given category."""
    try:
        categories = get_categories(category_name)
        return value in categories
    except KeyError:
        return False
