"""Starter skill taxonomy used to normalize skill names.

Each entry maps a canonical (base) skill to the spellings that should resolve
to it. Expand based on your users' domains.
"""

SKILL_CATEGORIES = (
    "PROGRAMMING_LANGUAGE",
    "FRAMEWORK",
    "DATABASE",
    "CLOUD",
    "DEVOPS",
    "TOOL",
    "DATA_SCIENCE",
    "ARCHITECTURE",
    "METHODOLOGY",
    "SOFT_SKILL",
    "OTHER",
)

SKILL_TAXONOMY = [
    {
        "canonical_skill": "Python",
        "synonyms": ["python", "py", "python3", "python 3", "cpython"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "JavaScript",
        "synonyms": ["javascript", "js", "ecmascript", "es6", "es2015", "vanilla js"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "TypeScript",
        "synonyms": ["typescript", "ts"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "Java",
        "synonyms": ["java", "jdk", "jre", "java se", "java ee"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "C++",
        "synonyms": ["c++", "cpp", "cplusplus"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "C#",
        "synonyms": ["c#", "csharp", "c sharp"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "Go",
        "synonyms": ["go", "golang"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "Rust",
        "synonyms": ["rust"],
        "category": "PROGRAMMING_LANGUAGE"
    },
    {
        "canonical_skill": "SQL",
        "synonyms": ["sql", "structured query language", "t-sql", "pl/sql", "plsql"],
        "category": "DATABASE"
    },
    {
        "canonical_skill": "PostgreSQL",
        "synonyms": ["postgresql", "postgres", "psql", "postgre"],
        "category": "DATABASE"
    },
    {
        "canonical_skill": "MySQL",
        "synonyms": ["mysql", "mariadb"],
        "category": "DATABASE"
    },
    {
        "canonical_skill": "MongoDB",
        "synonyms": ["mongodb", "mongo"],
        "category": "DATABASE"
    },
    {
        "canonical_skill": "Redis",
        "synonyms": ["redis"],
        "category": "DATABASE"
    },
    {
        "canonical_skill": "Docker",
        "synonyms": ["docker", "docker compose", "containerization"],
        "category": "DEVOPS"
    },
    {
        "canonical_skill": "Kubernetes",
        "synonyms": ["kubernetes", "k8s"],
        "category": "DEVOPS"
    },
    {
        "canonical_skill": "Terraform",
        "synonyms": ["terraform", "hcl"],
        "category": "DEVOPS"
    },
    {
        "canonical_skill": "CI/CD",
        "synonyms": ["ci/cd", "ci cd", "continuous integration", "continuous deployment", "continuous delivery"],
        "category": "DEVOPS"
    },
    {
        "canonical_skill": "AWS",
        "synonyms": ["aws", "amazon web services"],
        "category": "CLOUD"
    },
    {
        "canonical_skill": "Azure",
        "synonyms": ["azure", "microsoft azure"],
        "category": "CLOUD"
    },
    {
        "canonical_skill": "GCP",
        "synonyms": ["gcp", "google cloud", "google cloud platform"],
        "category": "CLOUD"
    },
    {
        "canonical_skill": "Node.js",
        "synonyms": ["node.js", "nodejs", "node"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "FastAPI",
        "synonyms": ["fastapi", "fast api"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Django",
        "synonyms": ["django", "django rest framework", "drf"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Flask",
        "synonyms": ["flask"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "React",
        "synonyms": ["react", "reactjs", "react.js"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Next.js",
        "synonyms": ["next.js", "nextjs", "next"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Vue.js",
        "synonyms": ["vue", "vuejs", "vue.js"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Angular",
        "synonyms": ["angular", "angularjs"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Spring",
        "synonyms": ["spring", "spring boot", "springboot"],
        "category": "FRAMEWORK"
    },
    {
        "canonical_skill": "Machine Learning",
        "synonyms": ["machine learning", "ml"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "Deep Learning",
        "synonyms": ["deep learning"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "TensorFlow",
        "synonyms": ["tensorflow", "tf", "keras"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "PyTorch",
        "synonyms": ["pytorch", "torch"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "NLP",
        "synonyms": ["nlp", "natural language processing"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "Pandas",
        "synonyms": ["pandas"],
        "category": "DATA_SCIENCE"
    },
    {
        "canonical_skill": "Git",
        "synonyms": ["git", "github", "gitlab", "version control"],
        "category": "TOOL"
    },
    {
        "canonical_skill": "Jira",
        "synonyms": ["jira"],
        "category": "TOOL"
    },
    {
        "canonical_skill": "REST API",
        "synonyms": ["rest", "restful", "rest api", "restful api", "restful apis", "rest apis"],
        "category": "ARCHITECTURE"
    },
    {
        "canonical_skill": "GraphQL",
        "synonyms": ["graphql", "graph ql"],
        "category": "ARCHITECTURE"
    },
    {
        "canonical_skill": "Microservices",
        "synonyms": ["microservices", "microservice", "micro services"],
        "category": "ARCHITECTURE"
    },
    {
        "canonical_skill": "Agile",
        "synonyms": ["agile", "scrum", "kanban"],
        "category": "METHODOLOGY"
    },
    {
        "canonical_skill": "Leadership",
        "synonyms": ["leadership", "team lead", "technical lead", "team leadership"],
        "category": "SOFT_SKILL"
    },
    {
        "canonical_skill": "Communication",
        "synonyms": ["communication", "communication skills"],
        "category": "SOFT_SKILL"
    },
    {
        "canonical_skill": "Project Management",
        "synonyms": ["project management", "program management"],
        "category": "SOFT_SKILL"
    }
]

# Short or common-word synonyms that only count when a skill is named on its
# own, never when scanning free text.
AMBIGUOUS_SYNONYMS = frozenset({"go", "py", "js", "ts", "tf", "ml", "rest", "node", "next", "torch", "spring"})
