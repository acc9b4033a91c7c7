"""Default table registry for the card-learning application.

Tables are listed parents first.  Column types are PostgreSQL types; the
descriptions are static and are what structure exports emit, they are
never inferred from data.
"""

from db_backup.backup.registry import ColumnDef, ForeignKey, IndexDef, TableDef, TableRegistry


def _c(name: str, type: str = "TEXT", nullable: bool = True, default: str | None = None) -> ColumnDef:
    return ColumnDef(name=name, type=type, nullable=nullable, default=default)


def _req(name: str, type: str = "TEXT", default: str | None = None) -> ColumnDef:
    return ColumnDef(name=name, type=type, nullable=False, default=default)


def _fk(field: str, table: str, on_delete: str = "CASCADE") -> ForeignKey:
    return ForeignKey(table=table, field=field, on_delete=on_delete)


def _table(
    name: str,
    *columns: ColumnDef,
    fks: tuple[ForeignKey, ...] = (),
    indexes: tuple[IndexDef, ...] = (),
    timestamps: bool = True,
) -> TableDef:
    cols = [ColumnDef.pk(), *columns]
    if timestamps:
        cols.append(_req("createdAt", "TIMESTAMPTZ", default="CURRENT_TIMESTAMP"))
        cols.append(_c("updatedAt", "TIMESTAMPTZ"))
    # every FK column gets an index
    fk_indexes = tuple(IndexDef(columns=[fk.field]) for fk in fks)
    return TableDef(
        name=name,
        columns=cols,
        foreign_keys=list(fks),
        indexes=list(fk_indexes + indexes),
    )


def _unique(*columns: str) -> IndexDef:
    return IndexDef(columns=list(columns), unique=True)


_USER = _req("userId")

DEFAULT_TABLES: list[TableDef] = [
    # Accounts and auth
    _table(
        "users",
        _c("name"),
        _req("email"),
        _c("emailVerified", "TIMESTAMPTZ"),
        _c("image"),
        _c("passwordHash"),
        _c("phone"),
        _req("role", default="'user'"),
        _req("xp", "INTEGER", default="0"),
        _req("level", "INTEGER", default="1"),
        _req("diamonds", "INTEGER", default="0"),
        indexes=(_unique("email"),),
    ),
    _table(
        "accounts",
        _USER,
        _req("type"),
        _req("provider"),
        _req("providerAccountId"),
        _c("refresh_token"),
        _c("access_token"),
        _c("expires_at", "INTEGER"),
        _c("token_type"),
        _c("scope"),
        _c("id_token"),
        _c("session_state"),
        fks=(_fk("userId", "users"),),
        indexes=(_unique("provider", "providerAccountId"),),
        timestamps=False,
    ),
    _table(
        "sessions",
        _req("sessionToken"),
        _USER,
        _req("expires", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"),),
        indexes=(_unique("sessionToken"),),
        timestamps=False,
    ),
    _table("settings", _req("key"), _c("value"), _c("description"), indexes=(_unique("key"),)),
    _table(
        "aiModels",
        _req("name"),
        _req("provider"),
        _req("modelId"),
        _req("isActive", "BOOLEAN", default="true"),
        _c("config", "JSONB"),
    ),
    # Card catalogue
    _table("categories", _req("name"), _c("description"), _c("color"), _c("icon"), indexes=(_unique("name"),)),
    _table("rarities", _req("name"), _req("color"), _req("dropRate", "DOUBLE PRECISION"), _req("order", "INTEGER", default="0")),
    _table("elements", _req("name"), _c("color"), _c("icon"), _c("description")),
    _table("cardStyles", _req("name"), _c("description"), _c("cssClass"), _req("isActive", "BOOLEAN", default="true")),
    _table("animeSeries", _req("name"), _c("description"), _c("imageUrl"), _c("releaseYear", "INTEGER")),
    _table(
        "characters",
        _req("name"),
        _c("animeSeriesId"),
        _c("description"),
        _c("imageUrl"),
        fks=(_fk("animeSeriesId", "animeSeries", "SET NULL"),),
    ),
    _table(
        "collections",
        _USER,
        _req("name"),
        _c("description"),
        _req("isPublic", "BOOLEAN", default="false"),
        fks=(_fk("userId", "users"),),
    ),
    _table(
        "cards",
        _req("name"),
        _c("description"),
        _c("imageUrl"),
        _c("categoryId"),
        _c("rarityId"),
        _c("elementId"),
        _c("cardStyleId"),
        _c("characterId"),
        _req("attack", "INTEGER", default="0"),
        _req("defense", "INTEGER", default="0"),
        _req("powerLevel", "DOUBLE PRECISION", default="0"),
        _c("codeSnippet"),
        fks=(
            _fk("categoryId", "categories", "SET NULL"),
            _fk("rarityId", "rarities", "SET NULL"),
            _fk("elementId", "elements", "SET NULL"),
            _fk("cardStyleId", "cardStyles", "SET NULL"),
            _fk("characterId", "characters", "SET NULL"),
        ),
    ),
    _table(
        "userCards",
        _USER,
        _req("cardId"),
        _req("quantity", "INTEGER", default="1"),
        _req("isFavorite", "BOOLEAN", default="false"),
        _c("obtainedAt", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"), _fk("cardId", "cards")),
        indexes=(_unique("userId", "cardId"),),
    ),
    _table("usedCardNames", _req("name"), _c("cardId"), indexes=(_unique("name"),)),
    _table(
        "analytics",
        _c("userId"),
        _req("event"),
        _c("payload", "JSONB"),
        fks=(_fk("userId", "users", "SET NULL"),),
    ),
    # Card distribution
    _table("cardRarities", _req("name"), _req("weight", "DOUBLE PRECISION"), _c("color"), _req("minLevel", "INTEGER", default="1")),
    _table(
        "cardDistributionRules",
        _req("cardRarityId"),
        _req("name"),
        _req("probability", "DOUBLE PRECISION"),
        _req("isActive", "BOOLEAN", default="true"),
        fks=(_fk("cardRarityId", "cardRarities"),),
    ),
    _table(
        "cardDistributionLogs",
        _USER,
        _c("cardId"),
        _c("ruleId"),
        _c("source"),
        fks=(
            _fk("userId", "users"),
            _fk("cardId", "cards", "SET NULL"),
            _fk("ruleId", "cardDistributionRules", "SET NULL"),
        ),
    ),
    _table(
        "userRarityStats",
        _USER,
        _req("cardRarityId"),
        _req("count", "INTEGER", default="0"),
        fks=(_fk("userId", "users"), _fk("cardRarityId", "cardRarities")),
    ),
    _table("cardPacks", _req("name"), _c("description"), _req("price", "INTEGER"), _req("cardCount", "INTEGER"), _req("isActive", "BOOLEAN", default="true")),
    _table(
        "cardPackOpenings",
        _USER,
        _req("cardPackId"),
        _c("cardsReceived", "JSONB"),
        fks=(_fk("userId", "users"), _fk("cardPackId", "cardPacks")),
    ),
    _table("cardAnalysisSettings", _req("key"), _c("value"), _req("isEnabled", "BOOLEAN", default="true")),
    _table(
        "analysisLogs",
        _c("cardId"),
        _req("status"),
        _c("message"),
        _c("durationMs", "INTEGER"),
        fks=(_fk("cardId", "cards", "SET NULL"),),
    ),
    # Quizzes and learning
    _table("quizCategories", _req("name"), _c("description"), _c("icon")),
    _table(
        "quizzes",
        _req("title"),
        _c("description"),
        _c("quizCategoryId"),
        _req("difficulty", default="'beginner'"),
        _req("isPublished", "BOOLEAN", default="false"),
        fks=(_fk("quizCategoryId", "quizCategories", "SET NULL"),),
    ),
    _table(
        "quizQuestions",
        _req("quizId"),
        _req("question"),
        _c("options", "JSONB"),
        _req("correctAnswer"),
        _c("explanation"),
        _req("order", "INTEGER", default="0"),
        fks=(_fk("quizId", "quizzes"),),
    ),
    _table(
        "quizAttempts",
        _USER,
        _req("quizId"),
        _req("score", "INTEGER", default="0"),
        _c("answers", "JSONB"),
        _c("completedAt", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"), _fk("quizId", "quizzes")),
    ),
    _table(
        "learningActivities",
        _req("title"),
        _c("description"),
        _req("activityType"),
        _c("categoryId"),
        _req("difficulty", default="'beginner'"),
        _c("content", "JSONB"),
        _req("xpReward", "INTEGER", default="0"),
        _req("isPublished", "BOOLEAN", default="false"),
        fks=(_fk("categoryId", "categories", "SET NULL"),),
    ),
    _table(
        "activityAttempts",
        _USER,
        _req("activityId"),
        _req("score", "INTEGER", default="0"),
        _req("completed", "BOOLEAN", default="false"),
        _c("timeSpent", "INTEGER"),
        fks=(_fk("userId", "users"), _fk("activityId", "learningActivities")),
    ),
    _table(
        "codeSubmissions",
        _USER,
        _c("activityId"),
        _req("code"),
        _req("language", default="'python'"),
        _req("passed", "BOOLEAN", default="false"),
        _c("output"),
        fks=(_fk("userId", "users"), _fk("activityId", "learningActivities", "SET NULL")),
    ),
    # Rewards and progression
    _table("badges", _req("name"), _c("description"), _c("icon"), _req("rarity", default="'common'"), _c("criteria", "JSONB")),
    _table(
        "userBadges",
        _USER,
        _req("badgeId"),
        _c("earnedAt", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"), _fk("badgeId", "badges")),
        indexes=(_unique("userId", "badgeId"),),
    ),
    _table(
        "dailyQuests",
        _USER,
        _req("questType"),
        _req("target", "INTEGER"),
        _req("progress", "INTEGER", default="0"),
        _req("completed", "BOOLEAN", default="false"),
        _req("date", "DATE"),
        fks=(_fk("userId", "users"),),
    ),
    _table(
        "diamondTransactions",
        _USER,
        _req("amount", "INTEGER"),
        _req("type"),
        _c("reason"),
        fks=(_fk("userId", "users"),),
    ),
    _table("diamondPackages", _req("name"), _req("diamonds", "INTEGER"), _req("price", "NUMERIC(10, 2)"), _req("currency", default="'USD'"), _req("isActive", "BOOLEAN", default="true")),
    _table(
        "diamondPurchases",
        _USER,
        _c("packageId"),
        _req("diamonds", "INTEGER"),
        _req("amount", "NUMERIC(10, 2)"),
        _req("status", default="'pending'"),
        _c("paymentReference"),
        fks=(_fk("userId", "users"), _fk("packageId", "diamondPackages", "SET NULL")),
    ),
    _table("dailyMiniQuizzes", _req("question"), _c("options", "JSONB"), _req("correctAnswer"), _req("date", "DATE")),
    _table(
        "dailyMiniQuizAttempts",
        _USER,
        _req("dailyMiniQuizId"),
        _req("answer"),
        _req("isCorrect", "BOOLEAN"),
        fks=(_fk("userId", "users"), _fk("dailyMiniQuizId", "dailyMiniQuizzes")),
    ),
    _table(
        "userStreaks",
        _USER,
        _req("currentStreak", "INTEGER", default="0"),
        _req("longestStreak", "INTEGER", default="0"),
        _c("lastActivityAt", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"),),
    ),
    _table("xpMultiplierEvents", _req("name"), _req("multiplier", "DOUBLE PRECISION"), _req("startsAt", "TIMESTAMPTZ"), _req("endsAt", "TIMESTAMPTZ"), _req("isActive", "BOOLEAN", default="true")),
    _table(
        "xpEventParticipations",
        _USER,
        _req("eventId"),
        _req("xpEarned", "INTEGER", default="0"),
        fks=(_fk("userId", "users"), _fk("eventId", "xpMultiplierEvents")),
    ),
    _table("dailyLoginBonuses", _req("day", "INTEGER"), _req("diamonds", "INTEGER", default="0"), _req("xp", "INTEGER", default="0"), _c("cardPackId")),
    _table(
        "userDailyLogins",
        _USER,
        _c("bonusId"),
        _req("loginDate", "DATE"),
        _req("claimed", "BOOLEAN", default="false"),
        fks=(_fk("userId", "users"), _fk("bonusId", "dailyLoginBonuses", "SET NULL")),
    ),
    _table("weeklyChallenges", _req("title"), _c("description"), _req("target", "INTEGER"), _req("reward", "INTEGER"), _req("startsAt", "TIMESTAMPTZ"), _req("endsAt", "TIMESTAMPTZ")),
    _table(
        "userChallengeProgress",
        _USER,
        _req("challengeId"),
        _req("progress", "INTEGER", default="0"),
        _req("completed", "BOOLEAN", default="false"),
        fks=(_fk("userId", "users"), _fk("challengeId", "weeklyChallenges")),
    ),
    _table(
        "loginHistory",
        _USER,
        _c("ipAddress"),
        _c("userAgent"),
        _req("success", "BOOLEAN", default="true"),
        fks=(_fk("userId", "users"),),
        timestamps=False,
    ),
    _table(
        "loginStreaks",
        _USER,
        _req("currentStreak", "INTEGER", default="0"),
        _req("longestStreak", "INTEGER", default="0"),
        _c("lastLoginDate", "DATE"),
        fks=(_fk("userId", "users"),),
    ),
    # Python tips
    _table("pythonTipCategories", _req("name"), _c("description"), _c("color"), _c("icon")),
    _table(
        "pythonTips",
        _req("title"),
        _req("content"),
        _c("codeExample"),
        _c("categoryId"),
        _req("difficulty", default="'beginner'"),
        _c("tags", "JSONB"),
        _req("isPublished", "BOOLEAN", default="false"),
        fks=(_fk("categoryId", "pythonTipCategories", "SET NULL"),),
    ),
    _table(
        "userPythonTipInteractions",
        _USER,
        _req("tipId"),
        _req("liked", "BOOLEAN", default="false"),
        _req("bookmarked", "BOOLEAN", default="false"),
        _c("viewedAt", "TIMESTAMPTZ"),
        fks=(_fk("userId", "users"), _fk("tipId", "pythonTips")),
    ),
    _table(
        "pythonTipStreaks",
        _USER,
        _req("currentStreak", "INTEGER", default="0"),
        _req("longestStreak", "INTEGER", default="0"),
        fks=(_fk("userId", "users"),),
    ),
    _table(
        "dailyPythonTips",
        _req("tipId"),
        _req("date", "DATE"),
        fks=(_fk("tipId", "pythonTips"),),
        indexes=(_unique("date"),),
    ),
    _table(
        "pythonTipFeedback",
        _USER,
        _req("tipId"),
        _req("rating", "INTEGER"),
        _c("comment"),
        fks=(_fk("userId", "users"), _fk("tipId", "pythonTips")),
    ),
    # Blog
    _table(
        "blogPosts",
        _req("slug"),
        _req("title"),
        _req("content"),
        _c("excerpt"),
        _c("authorId"),
        _req("published", "BOOLEAN", default="false"),
        _c("publishedAt", "TIMESTAMPTZ"),
        fks=(_fk("authorId", "users", "SET NULL"),),
        indexes=(_unique("slug"),),
    ),
    _table(
        "blogPostInteractions",
        _USER,
        _req("postId"),
        _req("liked", "BOOLEAN", default="false"),
        _req("bookmarked", "BOOLEAN", default="false"),
        fks=(_fk("userId", "users"), _fk("postId", "blogPosts")),
    ),
    # Code arena configuration
    _table("arenaConfigurations", _req("name"), _c("description"), _req("isActive", "BOOLEAN", default="true"), _c("settings", "JSONB")),
    _table(
        "arenaDifficultyConfigs",
        _req("arenaConfigId"),
        _req("difficulty"),
        _req("timeLimit", "INTEGER"),
        _req("xpMultiplier", "DOUBLE PRECISION", default="1"),
        fks=(_fk("arenaConfigId", "arenaConfigurations"),),
    ),
    _table(
        "arenaCategoryConfigs",
        _req("arenaConfigId"),
        _req("category"),
        _req("isEnabled", "BOOLEAN", default="true"),
        _req("weight", "DOUBLE PRECISION", default="1"),
        fks=(_fk("arenaConfigId", "arenaConfigurations"),),
    ),
    _table(
        "arenaActivityTypeConfigs",
        _req("arenaConfigId"),
        _req("activityType"),
        _req("isEnabled", "BOOLEAN", default="true"),
        fks=(_fk("arenaConfigId", "arenaConfigurations"),),
    ),
    _table(
        "arenaUIConfigs",
        _req("arenaConfigId"),
        _c("theme"),
        _c("layout", "JSONB"),
        fks=(_fk("arenaConfigId", "arenaConfigurations"),),
    ),
]

DEFAULT_REGISTRY = TableRegistry(tables=DEFAULT_TABLES)
