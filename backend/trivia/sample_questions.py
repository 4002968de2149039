# Small starter bank loaded by `flask seed-questions`. Option "a" is the right answer.
SAMPLE_QUESTIONS = [
    {'category': 'science', 'question': 'What is the chemical symbol for gold?', 'a': 'Au', 'b': 'Ag', 'c': 'Gd', 'd': 'Go'},
    {'category': 'science', 'question': 'Which planet is known as the Red Planet?', 'a': 'Mars', 'b': 'Venus', 'c': 'Jupiter', 'd': 'Mercury'},
    {'category': 'science', 'question': 'What gas do plants absorb from the air?', 'a': 'Carbon dioxide', 'b': 'Oxygen', 'c': 'Nitrogen', 'd': 'Helium'},
    {'category': 'science', 'question': 'How many bones are in the adult human body?', 'a': '206', 'b': '186', 'c': '212', 'd': '256'},
    {'category': 'science', 'question': 'What is the hardest natural substance?', 'a': 'Diamond', 'b': 'Quartz', 'c': 'Granite', 'd': 'Iron'},
    {'category': 'science', 'question': 'What is the speed of light in a vacuum, roughly?', 'a': '300,000 km/s', 'b': '30,000 km/s', 'c': '3,000 km/s', 'd': '3,000,000 km/s'},
    {'category': 'history', 'question': 'In which year did the Berlin Wall fall?', 'a': '1989', 'b': '1991', 'c': '1985', 'd': '1979'},
    {'category': 'history', 'question': 'Who was the first President of the United States?', 'a': 'George Washington', 'b': 'John Adams', 'c': 'Thomas Jefferson', 'd': 'Abraham Lincoln'},
    {'category': 'history', 'question': 'Which empire built Machu Picchu?', 'a': 'Inca', 'b': 'Aztec', 'c': 'Maya', 'd': 'Olmec'},
    {'category': 'history', 'question': 'The Magna Carta was signed in which century?', 'a': '13th', 'b': '11th', 'c': '15th', 'd': '17th'},
    {'category': 'history', 'question': 'Which ship sank on its maiden voyage in 1912?', 'a': 'Titanic', 'b': 'Lusitania', 'c': 'Britannic', 'd': 'Olympic'},
    {'category': 'history', 'question': 'Who painted the Mona Lisa?', 'a': 'Leonardo da Vinci', 'b': 'Michelangelo', 'c': 'Raphael', 'd': 'Donatello'},
    {'category': 'geography', 'question': 'What is the capital of Australia?', 'a': 'Canberra', 'b': 'Sydney', 'c': 'Melbourne', 'd': 'Perth'},
    {'category': 'geography', 'question': 'Which is the longest river in the world?', 'a': 'Nile', 'b': 'Amazon', 'c': 'Yangtze', 'd': 'Mississippi'},
    {'category': 'geography', 'question': 'Mount Kilimanjaro is in which country?', 'a': 'Tanzania', 'b': 'Kenya', 'c': 'Uganda', 'd': 'Ethiopia'},
    {'category': 'geography', 'question': 'Which ocean is the largest?', 'a': 'Pacific', 'b': 'Atlantic', 'c': 'Indian', 'd': 'Arctic'},
    {'category': 'geography', 'question': 'What is the smallest country by area?', 'a': 'Vatican City', 'b': 'Monaco', 'c': 'San Marino', 'd': 'Liechtenstein'},
    {'category': 'geography', 'question': 'Which desert is the largest hot desert?', 'a': 'Sahara', 'b': 'Gobi', 'c': 'Kalahari', 'd': 'Mojave'},
]
