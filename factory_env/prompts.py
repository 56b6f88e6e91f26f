"""Fixed wording shown (and narrated) to the child in each phase."""

DEMO_INSTRUCTIONS = (
    "You are an elf in a star factory. The star factory has three machines. Each machine has three slots "
    "that make stars bigger or smaller. You will now watch the stars go into the different slots. "
    "Notice what happens to the stars."
)
COMPREHENSION_QUESTION = "Remember the stars that you made from the machines? Which machine made these stars?"
EXTRA_SMALL_QUESTION = (
    "Now the elf boss gives you one more slot to make stars. The slot looks like this. "
    "Which machine would you like to put this slot in?"
)
SMALL_EXPERIMENT_QUESTION = (
    "Now there is a new slot on the right end of each machine. The elf boss wants you to make an extra small "
    "star for his baby, smaller than any of the other ones you have seen. You have one chance. "
    "Which slot will you use?"
)

# The first four are the hat rounds, the last two are answered by clicking a machine
QUESTIONS = [
    "You are now an elf working in a hat factory. Before you start working, you are given 2 hats to try out. "
    "The machines change the size of the hats. You can put them in any of the slots in any of the machines.",
    "Now the elf boss wants you to make the biggest hats you can make. Where would you put these three hats?",
    "Now the elf boss wants you to make three medium sized hats. Where would you put these three hats?",
    "Now the elf boss wants you to make three small hats. Where would you put these three hats?",
    "Now the elf boss has a new job for you. You will work to make new kinds of things that he wants. "
    "Which machine do you want to keep?",
    "You are now given more things. You can play with one machine more. Which machine do you choose?",
]
HAT_ROUNDS = 4

LIGHTBULB_QUESTIONS = [
    "You are now an elf working in a lightbulb factory. Before you start working, you are given 2 lightbulbs "
    "to try out. The machines change the brightness of the lightbulbs. You can put them in any of the slots "
    "in any of the machines.",
    "Now the elf boss wants you to make a dim lightbulb a bright lightbulb (like circled). "
    "Where would you put this lightbulb to make it a bright lightbulb?",
    "Now the elf boss wants you to make a bright lightbulb a dim lightbulb (like circled). "
    "Where would you put this lightbulb to make it a dim lightbulb?",
]
LIGHTBULB_LABELS = {
    1: "a dim lightbulb",
    2: "a sort of dim lightbulb",
    3: "a sort of bright lightbulb",
    4: "a bright lightbulb",
}

EXPLORATION_INSTRUCTIONS = "You are now given 2 mushrooms. You can put them in any of the slots from any of the machines."
EXPLORATION_HINT = "When you are done, you can hit the 'Finish Playing' button."
DEBRIEF_PROMPT = "Optionally: Can you describe how you played with the machines? Did you learn anything new?"
WHY_PROMPT = "Why did you choose that?"
